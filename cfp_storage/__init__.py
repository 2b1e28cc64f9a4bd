"""Storage service for conference call-for-papers uploads."""

__version__ = "0.1.0"
