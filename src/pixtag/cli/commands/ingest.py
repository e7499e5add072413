"""Image ingestion command."""

from pathlib import Path
from typing import List

import click

from pixtag.annotation import VisionAnnotator
from pixtag.cli.base import CliCommand
from pixtag.image import ImageProcessor
from pixtag.ingest_pipeline import IngestEvent, IngestPipeline, UploadItem, UploadStatus
from pixtag.settings import settings


@click.command(name='ingest')
@click.argument('directory', type=click.Path(exists=True, file_okay=False))
@click.option('--owner-id', required=True, help='Owner the images are ingested for')
@click.option('--recursive/--no-recursive', default=True, help='Process subdirectories')
def ingest_command(directory: str, owner_id: str, recursive: bool):
    """Ingest images from a local directory."""
    cmd = IngestCommand(directory, owner_id, recursive)
    cmd.run()


class IngestCommand(CliCommand):
    """Command to ingest images from a local directory."""

    def __init__(self, directory: str, owner_id: str, recursive: bool):
        super().__init__()
        self.directory = directory
        self.owner_id = owner_id
        self.recursive = recursive
        self.processor = ImageProcessor(
            thumbnail_size=(settings.thumbnail_size, settings.thumbnail_size),
            quality=settings.thumbnail_quality,
        )

    def run(self):
        """Execute ingest command."""
        owner_id = self.require_owner(self.owner_id)
        files = self._find_images()
        click.echo(f"Found {len(files)} images in {self.directory}")
        if not files:
            click.echo("No images found!")
            return

        self.setup_db()
        try:
            pipeline = IngestPipeline(
                db=self.db,
                store=self.setup_store(),
                annotator=VisionAnnotator.from_settings(settings),
                processor=self.processor,
            )
            items = [UploadItem(filename=path.name, source_path=path) for path in files]
            progress = pipeline.ingest_batch(owner_id, items, on_event=self._report)
        finally:
            self.cleanup_db()

        failed = [p for p in progress.values() if p.status == UploadStatus.ERROR]
        click.echo(f"\n{len(progress) - len(failed)} of {len(progress)} images ingested")
        if failed:
            raise click.ClickException(f"{len(failed)} image(s) failed to ingest")

    def _find_images(self) -> List[Path]:
        dir_path = Path(self.directory)
        candidates = dir_path.rglob('*') if self.recursive else dir_path.glob('*')
        return sorted(
            path for path in candidates
            if path.is_file() and self.processor.is_supported(path.name)
        )

    @staticmethod
    def _report(event: IngestEvent) -> None:
        if event.kind == "success":
            click.echo(f"✓ {event.filename} (image {event.image_id})")
        else:
            click.echo(f"✗ {event.filename}: {event.message}", err=True)
