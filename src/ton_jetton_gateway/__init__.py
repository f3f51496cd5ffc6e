"""Rate-limited, caching access layer for TON jetton balance lookups."""

__version__ = "0.1.0"
