"""Configuration management module.

Handles loading and saving the archive configuration stored at
<root>/.gma/config.toml. Dates are persisted as TOML offset date-times
in UTC so the file does not depend on the local timezone.

Usage:
    from gmarchive.config import load_config, save_config
    from gmarchive.config.paths import ArchivePaths

    paths = ArchivePaths(Path("~/Mail/Archive"))
    config = load_config(paths)
"""

import tomllib
from datetime import date, datetime, timezone

import tomli_w

from gmarchive.errors import ConfigurationError
from gmarchive.sync.periods import Period

from .paths import ArchivePaths
from .schema import ConfigFile, SyncConfig

__all__ = [
    "load_config",
    "save_config",
    "ArchivePaths",
    "SyncConfig",
]


def load_config(paths: ArchivePaths) -> SyncConfig:
    """Load the archive configuration from disk.

    Args:
        paths: Locations of the archive being synced.

    Returns:
        The validated configuration.

    Raises:
        ConfigurationError: If the file is missing or holds invalid values.
    """
    if not paths.config_file.exists():
        raise ConfigurationError(
            f"Config file {paths.config_file} does not exist. "
            "First run 'gmarchive init'?"
        )

    try:
        with open(paths.config_file, "rb") as f:
            data: ConfigFile = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid config file {paths.config_file}: {e}")

    period = data.get("period")
    try:
        period = Period(period) if period is not None else None
    except ValueError:
        raise ConfigurationError(f"Invalid period in config: {period}")

    return SyncConfig(
        query=data.get("query", ""),
        after=_as_utc(data.get("after"), "after"),
        before=_as_utc(data.get("before"), "before"),
        period=period,
    )


def save_config(paths: ArchivePaths, config: SyncConfig) -> None:
    """Save the archive configuration to disk.

    Absent bounds and period are left out of the file rather than written
    as empty values (TOML has no null).

    Args:
        paths: Locations of the archive.
        config: Configuration to persist.
    """
    paths.ensure_gma_dir()

    data: ConfigFile = {"query": config.query}
    if config.after is not None:
        data["after"] = config.after.astimezone(timezone.utc)
    if config.before is not None:
        data["before"] = config.before.astimezone(timezone.utc)
    if config.period is not None:
        data["period"] = config.period.value

    with open(paths.config_file, "wb") as f:
        tomli_w.dump(data, f)


def _as_utc(value, key: str) -> datetime | None:
    """Normalize a TOML date-time to an aware UTC datetime.

    Local date-times (no offset) and plain dates are taken to be UTC.
    """
    if value is None:
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if not isinstance(value, datetime):
        raise ConfigurationError(f"'{key}' must be a date-time, got {value!r}")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
