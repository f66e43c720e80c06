"""Calendar periods used to partition the archive.

A partitioned archive stores each message in a Maildir named after the
year, month or day of its Date header:

- year:  2020/
- month: 2020.01/
- day:   2020.01.05/

All truncation happens in UTC. A "boundary" is an instant that is its
own floor, i.e. the first instant of a period.
"""

from collections.abc import Iterator
from datetime import datetime, timezone
from enum import Enum

from dateutil.relativedelta import relativedelta


class Period(str, Enum):
    """Partition granularity."""

    YEAR = "year"
    MONTH = "month"
    DAY = "day"

    @property
    def label_format(self) -> str:
        """strftime/strptime pattern for partition directory names."""
        return _LABEL_FORMATS[self]

    def floor(self, instant: datetime) -> datetime:
        """Truncate to the start of the enclosing period."""
        dt = instant.astimezone(timezone.utc)
        if self is Period.YEAR:
            return datetime(dt.year, 1, 1, tzinfo=timezone.utc)
        if self is Period.MONTH:
            return datetime(dt.year, dt.month, 1, tzinfo=timezone.utc)
        return datetime(dt.year, dt.month, dt.day, tzinfo=timezone.utc)

    def ceil(self, instant: datetime) -> datetime:
        """Round up to the start of the next period, unless already a boundary."""
        floor = self.floor(instant)
        if floor == instant:
            return floor
        return floor + self.as_interval(1)

    def as_interval(self, n: int) -> relativedelta:
        """Return n calendar periods, for date arithmetic.

        Month and year intervals follow the calendar, so adding one month
        to Jan 1 lands on Feb 1 and adding one to Feb 1 lands on Mar 1.
        """
        if self is Period.YEAR:
            return relativedelta(years=n)
        if self is Period.MONTH:
            return relativedelta(months=n)
        return relativedelta(days=n)

    def interval_count(self, start: datetime, end: datetime) -> int:
        """Number of whole periods between start and end."""
        if self is Period.DAY:
            return (end - start).days
        delta = relativedelta(end, start)
        if self is Period.YEAR:
            return delta.years
        return delta.years * 12 + delta.months

    def label(self, instant: datetime) -> str:
        """Partition directory name for the period containing instant."""
        return self.floor(instant).strftime(self.label_format)

    def parse_label(self, text: str) -> datetime | None:
        """Inverse of label().

        Returns None for names that are not partitions of this period, so
        directory listings can be scanned without filtering first.
        """
        try:
            parsed = datetime.strptime(text, self.label_format)
        except ValueError:
            return None
        boundary = parsed.replace(tzinfo=timezone.utc)
        # strptime accepts unpadded fields ("2020.1"); keep labels canonical
        if self.label(boundary) != text:
            return None
        return boundary

    def boundaries(self, start: datetime, end: datetime) -> Iterator[datetime]:
        """Yield consecutive boundaries from start to end, both included."""
        current = start
        step = self.as_interval(1)
        while current <= end:
            yield current
            current = current + step


_LABEL_FORMATS = {
    Period.YEAR: "%Y",
    Period.MONTH: "%Y.%m",
    Period.DAY: "%Y.%m.%d",
}
