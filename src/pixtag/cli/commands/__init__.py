"""CLI commands package."""

from . import (
    annotate,
    ingest,
    search,
)

__all__ = [
    'annotate',
    'ingest',
    'search',
]
