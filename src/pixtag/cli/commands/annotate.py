"""Re-run annotation for a stored image."""

import json

import click

from pixtag.annotation import VisionAnnotator
from pixtag.cli.base import CliCommand
from pixtag.errors import PixtagError
from pixtag.ingest_pipeline import annotate_image
from pixtag.records import get_image
from pixtag.settings import settings


@click.command(name='annotate')
@click.argument('image_id', type=int)
@click.option('--owner-id', required=True, help='Owner of the image')
def annotate_command(image_id: int, owner_id: str):
    """Annotate IMAGE_ID with the vision model and store the result."""
    cmd = AnnotateCommand(image_id, owner_id)
    cmd.run()


class AnnotateCommand(CliCommand):

    def __init__(self, image_id: int, owner_id: str):
        super().__init__()
        self.image_id = image_id
        self.owner_id = owner_id

    def run(self):
        owner_id = self.require_owner(self.owner_id)
        self.setup_db()
        try:
            image = get_image(self.db, self.image_id, owner_id)
            outcome = annotate_image(
                db=self.db,
                store=self.setup_store(),
                annotator=VisionAnnotator.from_settings(settings),
                image_id=image.id,
                owner_id=owner_id,
                image_path=image.original_path,
            )
        except PixtagError as exc:
            raise click.ClickException(str(exc))
        finally:
            self.cleanup_db()

        click.echo(json.dumps(outcome.result.to_dict(), indent=2))
