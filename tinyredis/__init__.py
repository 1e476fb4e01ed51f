"""An in-memory Redis-like data store for tests: storage, set, sorted set and stream commands, transactions and geohashes."""

__version__ = "0.1.0"

__all__ = [
    "cmd_set",
    "cmd_sorted_set",
    "cmd_stream",
    "db",
    "geo",
    "geohash",
    "server",
    "sorted_set_range",
    "transactions",
]