"""Reference remote store server for ledgersync."""
