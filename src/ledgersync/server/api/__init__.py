"""REST API routes for the ledgersync server."""
