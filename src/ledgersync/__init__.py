"""ledgersync - local-first sync engine for ledgers, transactions and categories."""

__version__ = "0.1.0"
