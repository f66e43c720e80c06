"""Sync engine for archive synchronization.

Coordinates listing messages in Gmail, downloading them and committing
them to the Maildir archive. Supports two layouts:

- flat: a single Maildir at the archive root
- partitioned: one Maildir per year, month or day, chosen by each
  message's Date header

Gmail's before:/after: operators are ambiguous about timezones, so every
query is padded by a day on both sides and messages are re-filtered on
their Date header. A message is only committed once it is certain which
partition it belongs to and that the partition is being synced; until
then it stays in the message cache.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from loguru import logger

from gmarchive.config.schema import SyncConfig
from gmarchive.storage.cache import MessageCache
from gmarchive.storage.maildir import MaildirStorage
from gmarchive.sync.fetch import FetchPipeline
from gmarchive.sync.gmail import GmailClient
from gmarchive.sync.models import Message
from gmarchive.sync.oldest import find_oldest_period
from gmarchive.sync.query import EXCLUDE_CHATS, build_query
from gmarchive.sync.source import stream_message_ids


@dataclass
class SyncOptions:
    """Per-run controls, as given on the command line.

    Attributes:
        concurrency: Number of parallel downloads.
        dry_run: Download and report, but write nothing to the archive.
        full: Re-check every period from the start of the archive.
        re_sync: Re-check this many periods before the last archived one.
        since: Start at this date, re-checking later periods.
    """

    concurrency: int = 10
    dry_run: bool = False
    full: bool = False
    re_sync: int | None = None
    since: datetime | None = None


@dataclass
class SyncResult:
    """Result of a sync operation.

    `committed` counts messages moved into the archive (or that would
    have been, in a dry run). `skipped` counts downloaded messages that
    fell outside the window being synced.
    """

    committed: int = 0
    skipped: int = 0
    periods: list[str] = field(default_factory=list)


def in_time_window(
    date: datetime, after: datetime | None, before: datetime | None
) -> bool:
    """True if date is in [after, before). Missing bounds are open."""
    if before is not None and date >= before:
        return False
    if after is not None and date < after:
        return False
    return True


class SyncEngine:
    """Engine for archiving a Gmail query to Maildir.

    Example:
        creds = get_credentials(paths)
        engine = SyncEngine(
            GmailClient(creds),
            MaildirStorage(paths.root),
            MessageCache(paths.cache_dir),
            SyncOptions(concurrency=10),
        )
        result = engine.sync(load_config(paths))
        print(f"Committed {result.committed} messages")
    """

    def __init__(
        self,
        gmail_client: GmailClient,
        maildir: MaildirStorage,
        cache: MessageCache,
        options: SyncOptions | None = None,
        now: datetime | None = None,
    ):
        """Initialize sync engine.

        Args:
            gmail_client: Gmail API client for listing and downloading.
            maildir: Archive storage.
            cache: Cache for downloaded, not yet committed messages.
            options: Per-run controls.
            now: Current time; defaults to the time of construction.
        """
        self._gmail = gmail_client
        self._maildir = maildir
        self._cache = cache
        self._options = options or SyncOptions()
        self._now = now or datetime.now(timezone.utc)

    def sync(self, config: SyncConfig) -> SyncResult:
        """Main sync entry point.

        Clears the message cache, then runs a flat or partitioned sync
        depending on whether the config has a period.

        Raises:
            RemoteCallError: If a Gmail call fails.
            ParseError: If a downloaded message can't be parsed.
        """
        self._cache.reset()

        if config.period is None:
            return self.sync_flat(config)
        return self.sync_partitioned(config)

    def _fetch(self, ids: Iterable[str]) -> Iterable[Message]:
        pipeline = FetchPipeline(
            self._gmail,
            self._cache,
            concurrency=self._options.concurrency,
            dry_run=self._options.dry_run,
        )
        return pipeline.run(ids)

    def _commit(self, message: Message, folder: str, result: SyncResult) -> None:
        """Move a cached message to its Maildir folder."""
        logger.info(message.summary())
        result.committed += 1

        # Dry runs don't cache, so there is nothing to move
        if message.path is None:
            return

        self._maildir.commit(message.path, message.id, folder)

    def sync_flat(self, config: SyncConfig) -> SyncResult:
        """Sync a flat archive: one Maildir at the root.

        Messages already in the root Maildir are not downloaded again.
        """
        result = SyncResult()

        previously_fetched = self._maildir.fetched_ids()
        ids = stream_message_ids(
            self._gmail, build_query(config), exclude=previously_fetched
        )

        if not self._options.dry_run:
            self._maildir.ensure_folder()

        for message in self._fetch(ids):
            if not in_time_window(message.date, config.after, config.before):
                result.skipped += 1
                continue
            self._commit(message, "", result)

        return result

    def start_boundary(self, config: SyncConfig) -> datetime:
        """First period to sync in a partitioned archive.

        In priority order: --full (config.after, or the oldest period with
        a match), --since (no earlier than config.after), the last archived
        period (rewound by --re-sync periods), config.after, the oldest
        period with a match.
        """
        period = config.period
        options = self._options

        if options.full:
            start = config.after or self._find_oldest(config)
        elif options.since is not None:
            start = options.since
            if config.after is not None:
                start = max(start, config.after)
        else:
            partitions = self._maildir.list_partitions(period)
            if partitions:
                start = partitions[-1]
                if options.re_sync:
                    start = start - period.as_interval(options.re_sync)
            elif config.after is not None:
                start = config.after
            else:
                start = self._find_oldest(config)

        return period.floor(start)

    def end_boundary(self, config: SyncConfig) -> datetime:
        """Boundary after the last period to sync."""
        return config.period.ceil(config.before or self._now)

    def _find_oldest(self, config: SyncConfig) -> datetime:
        query = " ".join(part for part in (config.query, EXCLUDE_CHATS) if part)
        return find_oldest_period(self._gmail, query, config.period, self._now)

    def sync_partitioned(self, config: SyncConfig) -> SyncResult:
        """Sync a partitioned archive, one period at a time.

        Walks (previous, current, next) period triples from one period
        before the start to one period after the end.
        """
        result = SyncResult()
        period = config.period
        one_period = period.as_interval(1)

        start = self.start_boundary(config)
        end = self.end_boundary(config)
        boundaries = list(period.boundaries(start - one_period, end + one_period))

        for prev, cur, nxt in zip(boundaries, boundaries[1:], boundaries[2:]):
            self.sync_period(config, prev, cur, nxt, result)

        return result

    def sync_period(
        self,
        config: SyncConfig,
        prev: datetime,
        cur: datetime,
        nxt: datetime,
        result: SyncResult,
    ) -> None:
        """Sync the messages dated in the period starting at cur.

        Each message goes to the partition of its own Date header, which
        is not necessarily cur.
        """
        period = config.period
        label = period.label(cur)
        logger.info("Sync {}", label)
        result.periods.append(label)

        # Gmail may return a message of a neighboring period, so a message
        # near a boundary can already be archived in prev or nxt
        previously_fetched: set[str] = set()
        for boundary in (prev, cur, nxt):
            previously_fetched |= self._maildir.fetched_ids(period.label(boundary))

        start_date = cur if config.after is None else max(cur, config.after)
        end_date = nxt if config.before is None else min(nxt, config.before)

        query = build_query(config, after=start_date, before=end_date)
        ids = stream_message_ids(self._gmail, query, exclude=previously_fetched)

        for message in self._fetch(ids):
            if not in_time_window(message.date, config.after, config.before):
                result.skipped += 1
                continue

            # Later messages stay cached until their own period is synced:
            # no partition may exist past the one being completed.
            if message.date >= end_date:
                result.skipped += 1
                continue

            self._commit(message, period.label(message.date), result)
