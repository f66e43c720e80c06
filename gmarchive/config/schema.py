"""Configuration schema definitions.

`ConfigFile` matches the structure of .gma/config.toml. `SyncConfig` is
the validated, immutable form handed to the sync engine.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import TypedDict

from gmarchive.sync.periods import Period


class ConfigFile(TypedDict, total=False):
    """Raw contents of config.toml.

    Attributes:
        query: Gmail search query selecting the archived messages.
        after: Only archive messages at or after this instant (UTC).
        before: Only archive messages strictly before this instant (UTC).
        period: Partition granularity ("year", "month" or "day").
    """

    query: str
    after: datetime
    before: datetime
    period: str


@dataclass(frozen=True)
class SyncConfig:
    """What to archive. Fixed for the duration of a run."""

    query: str = ""
    after: datetime | None = None
    before: datetime | None = None
    period: Period | None = None
