"""Building blocks for a Matrix media repository: records, stores, file storage and helpers."""

__version__ = "0.1.0"