"""Init command implementation.

Creates a new archive directory, authenticates with Gmail and saves the
query configuration used by subsequent fetches.
"""

import shutil
from pathlib import Path

import typer
from typing_extensions import Annotated

from gmarchive.auth import authenticate_loopback_flow, resolve_client
from gmarchive.cli.dates import parse_cli_date
from gmarchive.config import ArchivePaths, SyncConfig, save_config
from gmarchive.errors import ConfigurationError
from gmarchive.sync.periods import Period

app = typer.Typer(help="Create an archive directory and authenticate with Gmail")


@app.callback(invoke_without_command=True)
def init(
    ctx: typer.Context,
    dir: Annotated[
        Path | None,
        typer.Option(
            help="Root of the Maildir hierarchy (must not exist). "
            "Defaults to current dir."
        ),
    ] = None,
    query: Annotated[
        str,
        typer.Option(
            help="Only archive emails matching this Gmail query "
            "(see https://support.google.com/mail/answer/7190)"
        ),
    ] = "",
    after: Annotated[
        str | None,
        typer.Option(help="Only archive emails after this date (UTC). Example: 2017-04-03"),
    ] = None,
    before: Annotated[
        str | None,
        typer.Option(
            help="Only archive emails before this date (UTC). Example: 2017-04-03T12:01"
        ),
    ] = None,
    period: Annotated[
        Period | None,
        typer.Option(help="Split the archive into one Maildir per year, month or day"),
    ] = None,
    client_id: Annotated[
        str | None, typer.Option(help="Google OAuth client ID")
    ] = None,
    client_secret: Annotated[
        str | None, typer.Option(help="Google OAuth client secret")
    ] = None,
):
    """Create an archive directory and authenticate with Gmail."""
    after_date = parse_cli_date(after, "--after") if after else None
    before_date = parse_cli_date(before, "--before") if before else None

    if after_date and before_date and after_date >= before_date:
        typer.echo("--after must be earlier than --before", err=True)
        raise typer.Exit(1)

    paths = ArchivePaths(dir or Path.cwd())
    if paths.root.exists():
        typer.echo(f"Directory {paths.root} already exists.", err=True)
        raise typer.Exit(1)

    try:
        client_id, client_secret = resolve_client(client_id, client_secret)
    except ConfigurationError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1)

    paths.root.mkdir(parents=True)
    paths.ensure_gma_dir()

    typer.echo("Opening browser for Gmail authorization...")
    try:
        authenticate_loopback_flow(client_id, client_secret, paths.credentials_file)
    except Exception as e:
        # Nothing was archived yet; leave no half-initialized archive behind
        shutil.rmtree(paths.root)
        typer.echo(f"Authentication failed: {e}", err=True)
        raise typer.Exit(1)

    save_config(
        paths,
        SyncConfig(query=query, after=after_date, before=before_date, period=period),
    )

    typer.echo(f"Initialized archive in {paths.root}")
    typer.echo("Run 'gmarchive fetch' in that directory to download messages.")
