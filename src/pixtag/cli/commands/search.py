"""Similarity, keyword and color search commands."""

from typing import List, Optional

import click

from pixtag.cli.base import CliCommand
from pixtag.errors import PixtagError
from pixtag.metadata import Image
from pixtag.search import filter_by_color, search_by_text
from pixtag.similarity import find_similar


@click.command(name='similar')
@click.argument('image_id', type=int)
@click.option('--owner-id', required=True, help='Owner of the image')
def similar_command(image_id: int, owner_id: str):
    """List images sharing tags or colors with IMAGE_ID."""
    SearchCommand(owner_id, lambda cmd: find_similar(cmd.db, image_id, cmd.owner_id)).run()


@click.command(name='search-text')
@click.argument('query')
@click.option('--owner-id', required=True, help='Owner whose images are searched')
def search_text_command(query: str, owner_id: str):
    """List images whose description or tags contain QUERY."""
    SearchCommand(owner_id, lambda cmd: search_by_text(cmd.db, cmd.owner_id, query)).run()


@click.command(name='filter-color')
@click.argument('color')
@click.option('--owner-id', required=True, help='Owner whose images are searched')
@click.option('--threshold', default=None, type=float, help='Maximum RGB distance (defaults to app setting)')
def filter_color_command(color: str, owner_id: str, threshold: Optional[float]):
    """List images with a dominant color near COLOR (#RRGGBB)."""
    SearchCommand(owner_id, lambda cmd: filter_by_color(cmd.db, cmd.owner_id, color, threshold)).run()


class SearchCommand(CliCommand):
    """Run a read-only query against one owner's images and print the matches."""

    def __init__(self, owner_id: str, query):
        super().__init__()
        self.owner_id = owner_id
        self.query = query

    def run(self):
        self.owner_id = self.require_owner(self.owner_id)
        self.setup_db()
        try:
            images = self.query(self)
            self._print(images)
        except PixtagError as exc:
            raise click.ClickException(str(exc))
        finally:
            self.cleanup_db()

    @staticmethod
    def _print(images: List[Image]) -> None:
        if not images:
            click.echo("No matching images.")
            return
        for image in images:
            annotation = image.annotation
            tags = ", ".join(annotation.tags or []) if annotation else ""
            colors = " ".join(annotation.colors or []) if annotation else ""
            click.echo(f"{image.id:>6}  {image.filename:<40} [{tags}] {colors}")
