"""Parsing of dates given on the command line."""

from datetime import datetime, timezone

import typer
from dateutil.parser import isoparse


def parse_cli_date(value: str, option: str) -> datetime:
    """Parse an ISO 8601 date or date-time, e.g. 2017-04-03 or 2017-04-03T12:01.

    Values without an offset are taken to be UTC.

    Raises:
        typer.Exit: If the value can't be parsed.
    """
    try:
        parsed = isoparse(value)
    except ValueError:
        typer.echo(f"Could not parse date for {option}: {value}", err=True)
        raise typer.Exit(1)

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
