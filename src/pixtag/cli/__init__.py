"""Pixtag CLI entry point with lazy command registration."""

from __future__ import annotations

import logging

import click

_COMMANDS_REGISTERED = False


def _register_commands_once() -> None:
    global _COMMANDS_REGISTERED
    if _COMMANDS_REGISTERED:
        return

    from .commands import annotate, ingest, search

    cli.add_command(ingest.ingest_command, name="ingest")
    cli.add_command(annotate.annotate_command, name="annotate")
    cli.add_command(search.similar_command, name="similar")
    cli.add_command(search.search_text_command, name="search-text")
    cli.add_command(search.filter_color_command, name="filter-color")

    _COMMANDS_REGISTERED = True


class _LazyCLIGroup(click.Group):
    def list_commands(self, ctx):
        _register_commands_once()
        return super().list_commands(ctx)

    def get_command(self, ctx, cmd_name):
        _register_commands_once()
        return super().get_command(ctx, cmd_name)


@click.group(cls=_LazyCLIGroup)
@click.option('--verbose', '-v', is_flag=True, default=False, help='Enable debug logging')
def cli(verbose: bool):
    """Pixtag CLI for ingesting, annotating and searching images."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


if __name__ == "__main__":
    cli()
