"""Streaming of message IDs matching a Gmail query."""

from collections.abc import Container, Iterator

from loguru import logger

from gmarchive.sync.gmail import GmailClient


def stream_message_ids(
    client: GmailClient,
    query: str,
    exclude: Container[str] = frozenset(),
) -> Iterator[str]:
    """Yield the IDs of all messages matching query, except those in exclude.

    Pages are fetched lazily and strictly one after the other: the next
    page is only requested once the previous page's token is known and its
    IDs have been handed out. Iterating again re-issues the requests.

    Args:
        client: Gmail client (see GmailClient.list_page).
        query: Gmail search query.
        exclude: IDs to skip, typically those already archived.

    Raises:
        RemoteCallError: If a page request fails.
    """
    page_token = None
    page_number = 0

    while True:
        page = client.list_page(query, page_token=page_token)
        page_number += 1
        ids = page["ids"]
        logger.debug("Page {} of '{}': {} ids", page_number, query, len(ids))

        for message_id in ids:
            if message_id not in exclude:
                yield message_id

        page_token = page.get("next_page_token")
        if not page_token:
            break
