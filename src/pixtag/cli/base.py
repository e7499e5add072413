"""Base command class for shared CLI setup/teardown."""

from typing import Optional

import click
from sqlalchemy.orm import sessionmaker

from pixtag.database import build_engine
from pixtag.settings import settings
from pixtag.storage import ObjectStore, create_object_store


class CliCommand:
    """Base class for all CLI commands with shared setup/teardown."""

    def __init__(self):
        self.engine = None
        self.Session = None
        self.db = None
        self.store: Optional[ObjectStore] = None

    def setup_db(self):
        """Initialize database connection."""
        self.engine = build_engine()
        self.Session = sessionmaker(bind=self.engine)
        self.db = self.Session()

    def setup_store(self) -> ObjectStore:
        """Initialize the configured object store."""
        if self.store is None:
            try:
                self.store = create_object_store(settings)
            except Exception as exc:
                raise click.ClickException(f"Object store unavailable: {exc}")
        return self.store

    def cleanup_db(self):
        """Close database connection."""
        if self.db:
            self.db.close()

    def require_owner(self, owner_id: str) -> str:
        owner_id = (owner_id or "").strip()
        if not owner_id:
            raise click.ClickException("An owner ID is required")
        return owner_id

    def run(self):
        """Execute command - override in subclasses."""
        raise NotImplementedError

    def __enter__(self):
        """Context manager entry."""
        self.setup_db()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.cleanup_db()
