"""Label design records, local/cloud storage and print-ready export."""

__version__ = "0.1.0"
