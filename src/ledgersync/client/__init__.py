"""Client side of ledgersync: stores, network monitor and sync engine."""
