"""Gmail search query construction.

Search operators: https://support.google.com/mail/answer/7190
"""

from datetime import datetime, timedelta

from gmarchive.config.schema import SyncConfig
from gmarchive.sync.periods import Period

# Google Chat messages also match most queries
EXCLUDE_CHATS = "-is:chat"


def date_clause(operator: str, instant: datetime) -> str:
    """Format a date operator, e.g. ``before:2024/01/31``."""
    return f"{operator}:{instant.year}/{instant.month:02d}/{instant.day:02d}"


def build_query(
    config: SyncConfig,
    after: datetime | None = None,
    before: datetime | None = None,
) -> str:
    """Build the Gmail query string for a sync window.

    Gmail evaluates before:/after: in an unspecified timezone, so both
    bounds are widened by a day. Callers must re-filter fetched messages
    on their Date header.

    Args:
        config: Archive configuration (base query and default bounds).
        after: Lower bound overriding config.after.
        before: Upper bound overriding config.before.

    Returns:
        Query string, e.g. "label:foo before:2020/02/02 after:2019/12/31 -is:chat".
    """
    if after is None:
        after = config.after
    if before is None:
        before = config.before

    clauses = [config.query or None]
    if before is not None:
        clauses.append(
            date_clause("before", Period.DAY.ceil(before) + timedelta(days=1))
        )
    if after is not None:
        clauses.append(
            date_clause("after", Period.DAY.floor(after) - timedelta(days=1))
        )
    clauses.append(EXCLUDE_CHATS)

    return " ".join(clause for clause in clauses if clause)
