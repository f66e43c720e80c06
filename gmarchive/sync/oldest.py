"""Search for the earliest period containing a matching message.

Gmail returns search results newest first, so there is no cheap way to
get the date of the oldest message matching a query. When the archive
has no lower bound, the oldest period is found by probing "is there any
match before this date?":

1. Probe the start of the current period, then go back 1, 2, 4, 8, ...
   periods until a probe finds nothing. The last two probes bracket the
   oldest period.
2. Binary search the bracket for the first period with a match.

Probes are made on period boundaries, so the result is a boundary too.
"""

from datetime import datetime

from loguru import logger

from gmarchive.sync.gmail import GmailClient
from gmarchive.sync.periods import Period


def has_message_before(client: GmailClient, query: str, instant: datetime) -> bool:
    """Probe for a match dated before instant."""
    found = client.has_message_before(query, instant)
    logger.debug("Messages before {}: {}", instant.date().isoformat(), found)
    return found


def geometric_search_interval(
    client: GmailClient,
    query: str,
    period: Period,
    now: datetime,
) -> tuple[datetime, datetime]:
    """Bracket the oldest period with a match.

    Returns:
        (begin, end) boundaries such that nothing matches before begin
        and something matches before end. If nothing matches before the
        current period, both are its start.
    """
    anchor = period.floor(now)
    if not has_message_before(client, query, anchor):
        return anchor, anchor

    end = anchor
    distance = 1

    while True:
        begin = anchor - period.as_interval(distance)
        if not has_message_before(client, query, begin):
            return begin, end
        end = begin
        distance *= 2


def binary_search_period(
    client: GmailClient,
    query: str,
    period: Period,
    begin: datetime,
    end: datetime,
) -> datetime:
    """Find the earliest period with a match between begin and end.

    Works on whole-period offsets from begin. `a` is the largest offset
    known to have nothing before it, `b` the smallest known to have
    something before it.
    """
    a = 0
    b = period.interval_count(begin, end)

    def boundary(offset: int) -> datetime:
        return begin + period.as_interval(offset)

    while True:
        if b - a <= 1:
            return boundary(a)

        c = (a + b) // 2
        if has_message_before(client, query, boundary(c)):
            b = c
        else:
            a = c


def find_oldest_period(
    client: GmailClient,
    query: str,
    period: Period,
    now: datetime,
) -> datetime:
    """Boundary of the earliest period containing a message matching query.

    Args:
        client: Gmail client used for probes.
        query: Base Gmail query of the archive.
        period: Partition granularity.
        now: Current time; the search walks backwards from its period.

    Raises:
        RemoteCallError: If a probe fails.
    """
    begin, end = geometric_search_interval(client, query, period, now)
    oldest = period.floor(binary_search_period(client, query, period, begin, end))
    logger.info("Oldest {} with messages: {}", period.value, period.label(oldest))
    return oldest
