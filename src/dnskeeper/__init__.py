"""Keep network adapters' DNS servers aligned with declared per-adapter policies."""

__version__ = "0.1.0"
