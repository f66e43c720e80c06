"""Main CLI entry point for gmarchive."""

import typer

from gmarchive import __version__
from gmarchive.cli import commands

app = typer.Typer(
    name="gmarchive",
    help="Archive the messages matching a Gmail query to Maildir",
    no_args_is_help=True,
)

# Register commands
app.add_typer(commands.init.app, name="init")
app.add_typer(commands.fetch.app, name="fetch")


@app.command()
def version():
    """Show version information."""
    typer.echo(f"gmarchive version {__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
