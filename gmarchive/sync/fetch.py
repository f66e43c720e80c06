"""Concurrent download of messages.

FetchPipeline turns a stream of Gmail IDs into a stream of Message
objects, downloading up to N messages in parallel. Each downloaded
message is written to the message cache before it is handed to the
caller, so a message the caller sees always has its file on disk.

Only the Subject, From and Date headers are parsed. The Date header is
what decides which partition a message is archived in.
"""

import re
from collections.abc import Iterable, Iterator
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path

from loguru import logger

from gmarchive.errors import ParseError
from gmarchive.storage.cache import MessageCache
from gmarchive.sync.gmail import GmailClient
from gmarchive.sync.models import Message

HEADERS = ("Subject", "From", "Date")

# Lenient match for RFC 822 dates (https://www.w3.org/Protocols/rfc822/#z28),
# ignoring the optional day of week and trailing comments
RFC822_DATE_RE = re.compile(
    r"(\d+\s+\w+\s+\d+\s+\d{2}:\d{2}:\d{2})(?:\s+([+-]\d{4}|[A-Za-z]+))?"
)


def unfold(lines: Iterable[str]) -> Iterator[str]:
    """Join folded header lines into logical lines.

    A line starting with whitespace continues the previous one
    (https://www.w3.org/Protocols/rfc822/3_Lexical.html#z1).
    """
    current = None
    for line in lines:
        if current is not None and line[:1].isspace():
            current = f"{current} {line.lstrip()}"
            continue
        if current is not None:
            yield current
        current = line
    if current is not None:
        yield current


def extract_headers(text: str, names: Iterable[str] = HEADERS) -> dict[str, str]:
    """Parse the requested headers from a message.

    Stops at the first blank line (end of the header block). Header names
    are matched case-insensitively; the first occurrence wins.

    Returns:
        Dict keyed by the names as requested, e.g. {"Subject": "Hello"}.
    """
    wanted = {name.lower(): name for name in names}
    headers: dict[str, str] = {}

    for line in unfold(text.splitlines()):
        if not line:
            break
        name, sep, value = line.partition(":")
        key = wanted.get(name.strip().lower())
        if sep and key and key not in headers:
            headers[key] = value.strip()

    return headers


def parse_date(value: str) -> datetime:
    """Parse an RFC 822 Date header into an aware datetime.

    Accepts numeric offsets ("+0100") and the named zones of RFC 822
    ("GMT", "EST", ...). "-0000" (no zone information) is read as UTC.

    Raises:
        ValueError: If the date matches neither form.
    """
    match = RFC822_DATE_RE.search(value)
    if not match:
        raise ValueError(f"Failed to parse date: {value!r}")

    stamp, zone = match.groups()
    try:
        parsed = parsedate_to_datetime(f"{stamp} {zone or ''}")
    except (ValueError, TypeError) as e:
        raise ValueError(f"Failed to parse date: {value!r}") from e

    if parsed.tzinfo is None:
        if zone != "-0000":
            raise ValueError(f"Failed to parse date: {value!r}")
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed


def parse_message(message_id: str, raw: bytes, path: Path | None) -> Message:
    """Build a Message from raw RFC 2822 bytes.

    Raises:
        ParseError: If the Date header is missing or unparseable.
    """
    headers = extract_headers(raw.decode("utf-8", errors="replace"))

    if "Date" not in headers:
        raise ParseError(message_id, "missing Date header")

    try:
        date = parse_date(headers["Date"])
    except ValueError as e:
        raise ParseError(message_id, str(e)) from e

    return Message(
        id=message_id,
        date=date,
        subject=headers.get("Subject"),
        sender=headers.get("From"),
        path=path,
        raw=raw,
    )


class FetchPipeline:
    """Download messages with bounded concurrency.

    Messages are yielded in completion order, not in the order of the
    input IDs. At most `concurrency` downloads are outstanding at any
    time; IDs are pulled from the input only as slots free up.

    Example:
        pipeline = FetchPipeline(client, cache, concurrency=10)
        for message in pipeline.run(ids):
            print(message.summary())
    """

    def __init__(
        self,
        client: GmailClient,
        cache: MessageCache,
        concurrency: int = 10,
        dry_run: bool = False,
    ):
        """Initialize the pipeline.

        Args:
            client: Gmail client used for downloads.
            cache: Where downloaded messages are written.
            concurrency: Maximum number of parallel downloads.
            dry_run: Don't write anything to disk.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._client = client
        self._cache = cache
        self._concurrency = concurrency
        self._dry_run = dry_run

    def fetch(self, message_id: str) -> Message:
        """Get one message, from the cache if it was already downloaded.

        Raises:
            RemoteCallError: If the download fails.
            ParseError: If the headers can't be parsed.
        """
        if self._cache.contains(message_id):
            logger.debug("Message {} read from cache", message_id)
            raw = self._cache.read(message_id)
            return parse_message(message_id, raw, self._cache.path_for(message_id))

        raw = self._client.get_raw(message_id)

        path = None
        if not self._dry_run:
            path = self._cache.write(message_id, raw)

        return parse_message(message_id, raw, path)

    def run(self, message_ids: Iterable[str]) -> Iterator[Message]:
        """Download all messages for a stream of IDs.

        The first failure stops the pipeline: pending downloads are
        cancelled and the error is raised to the caller.

        Raises:
            RemoteCallError: If a download fails.
            ParseError: If a message's headers can't be parsed.
        """
        with ThreadPoolExecutor(
            max_workers=self._concurrency, thread_name_prefix="gmarchive-fetch"
        ) as executor:
            pending: set[Future] = set()
            try:
                for message_id in message_ids:
                    if len(pending) >= self._concurrency:
                        done, pending = wait(pending, return_when=FIRST_COMPLETED)
                        for future in done:
                            yield future.result()
                    pending.add(executor.submit(self.fetch, message_id))

                while pending:
                    done, pending = wait(pending, return_when=FIRST_COMPLETED)
                    for future in done:
                        yield future.result()
            finally:
                for future in pending:
                    future.cancel()
