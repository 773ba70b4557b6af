"""Music Index - incremental indexer for a local audio collection."""

__version__ = "0.1.0"
