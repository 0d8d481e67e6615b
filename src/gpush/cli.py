"""Command-line entry point for ``git gpush-gc``."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Annotated, Optional

import typer

from . import __version__
from . import log as gpush_log
from .commands.gc import gc as gc_cmd

app = typer.Typer(
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help", "-?"]},
    help="Prune stale gpush tracking refs.",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"git-gpush-gc {__version__}")
        raise typer.Exit()


@app.command()
def gc(
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Show what would be pruned without deleting."),
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="List every pruned ref.")
    ] = False,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Only report problems.")] = False,
    debug: Annotated[bool, typer.Option("--debug", help="Trace every decision.")] = False,
    auto: Annotated[
        bool,
        typer.Option("--auto", help="Run only when gpush.gcInterval days have passed."),
    ] = False,
    no_color: Annotated[bool, typer.Option("--no-color", help="Disable colors.")] = False,
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version", callback=_version_callback, is_eager=True, help="Show the version."
        ),
    ] = None,
) -> None:
    """Prune tracking refs of merged, abandoned, and rebased-away Changes."""
    if quiet and (verbose or debug):
        raise typer.BadParameter(
            "cannot be combined with --verbose or --debug", param_hint="--quiet"
        )
    gpush_log.set_verbosity(quiet=quiet, verbose=verbose, debug=debug)
    gpush_log.set_no_color(no_color)
    gc_cmd(SimpleNamespace(dry_run=dry_run, quiet=quiet, auto=auto))


def main() -> None:
    app(prog_name="git-gpush-gc")
