"""Fetch command implementation."""

import sys
from pathlib import Path

import typer
from loguru import logger
from typing_extensions import Annotated

from gmarchive.cli.dates import parse_cli_date
from gmarchive.config import ArchivePaths, load_config
from gmarchive.errors import GmarchiveError
from gmarchive.storage.cache import MessageCache
from gmarchive.storage.maildir import MaildirStorage
from gmarchive.sync.engine import SyncEngine, SyncOptions
from gmarchive.sync.gmail import GmailClient, get_credentials

app = typer.Typer(help="Download new messages matching the archive's query")


def configure_logging(verbose: bool) -> None:
    """Send log messages to stderr; INFO and up when verbose, else WARNING."""
    logger.remove()
    logger.add(sys.stderr, level="INFO" if verbose else "WARNING", format="{message}")


@app.callback(invoke_without_command=True)
def fetch(
    ctx: typer.Context,
    dir: Annotated[
        Path | None,
        typer.Option(help="Root of the Maildir hierarchy. Defaults to current dir."),
    ] = None,
    concurrency: Annotated[
        int, typer.Option(min=1, help="Download N emails in parallel")
    ] = 10,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Print the date, sender and subject of each message"),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            help="Display emails that would be archived, but don't write them",
        ),
    ] = False,
    full: Annotated[
        bool,
        typer.Option("--full", help="Re-check all previously completed periods"),
    ] = False,
    re_sync: Annotated[
        int | None,
        typer.Option(
            min=0,
            help="Re-check the last N completed periods before continuing with "
            "the in-progress period (e.g. after changing the query)",
        ),
    ] = None,
    since: Annotated[
        str | None,
        typer.Option(
            help="Start at this date, re-checking completed periods after it "
            "(YYYY-MM-DD)"
        ),
    ] = None,
):
    """Download new messages matching the archive's query."""
    configure_logging(verbose or dry_run)

    since_date = parse_cli_date(since, "--since") if since else None
    paths = ArchivePaths(dir or Path.cwd())

    try:
        config = load_config(paths)
        creds = get_credentials(paths)

        engine = SyncEngine(
            GmailClient(creds),
            MaildirStorage(paths.root),
            MessageCache(paths.cache_dir),
            SyncOptions(
                concurrency=concurrency,
                dry_run=dry_run,
                full=full,
                re_sync=re_sync,
                since=since_date,
            ),
        )
        result = engine.sync(config)
    except GmarchiveError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1)

    if dry_run:
        typer.echo(f"Dry run: {result.committed} messages would be committed")
    else:
        typer.echo(f"Committed {result.committed} messages")
