"""Pixtag: image ingestion, annotation and similarity search."""

__version__ = "0.1.0"
