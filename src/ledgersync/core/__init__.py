"""Core types shared by the ledgersync client and server."""
