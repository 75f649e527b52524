"""batchlingo - batch document translation with deduplication and review round trips."""

__version__ = "0.1.0"
