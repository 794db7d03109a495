"""
Paginated fetch loop for a single room.

Pages forward through a room timeline starting at the stored token,
merging every page into the event store before moving on. The token
returned is always safe to persist as the next checkpoint.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..cancellation import CancellationToken, cancellable_sleep
from ..exceptions import BackupCancelledError
from ..local.event_store import EventStore
from ..remote.base import DIRECTION_FORWARD, EventSource
from ..types import FetchResult

DEFAULT_PAGE_SIZE = 100
DEFAULT_FETCH_DELAY = 0.01  # seconds between page requests


async def fetch_room_events(
    source: EventSource,
    room_id: str,
    room_path: Path,
    initial_token: str,
    event_store: EventStore,
    *,
    logger: logging.Logger | logging.LoggerAdapter,
    page_size: int = DEFAULT_PAGE_SIZE,
    fetch_delay: float = DEFAULT_FETCH_DELAY,
    cancel_token: CancellationToken | None = None,
) -> FetchResult:
    """Fetch and store every event after ``initial_token``.

    Stops when a page comes back empty or when the server hands back
    the same token it was given. A fetch or merge error stops the loop
    and is returned in ``FetchResult.error``; the returned token then
    still points at the last page that was fully merged.

    Args:
        source: Remote event source
        room_id: Room to fetch
        room_path: Room backup directory
        initial_token: Token to start from ("" for start of history)
        event_store: Store receiving each page
        logger: Logger for page-level progress
        page_size: Maximum events per request
        fetch_delay: Seconds to wait between requests
        cancel_token: Optional cooperative cancellation token

    Returns:
        Final token, number of events fetched, and the error if any
    """
    result = FetchResult(final_token=initial_token)
    current_token = initial_token

    while True:
        try:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            logger.debug(
                "Fetching messages",
                extra={"direction": DIRECTION_FORWARD, "token": current_token, "limit": page_size},
            )
            page = await source.fetch_page(room_id, current_token, page_size, DIRECTION_FORWARD)
        except BackupCancelledError as e:
            logger.warning("Fetch cancelled", extra={"token": current_token})
            result.error = e
            break
        except Exception as e:
            logger.error("Failed to fetch messages", extra={"error": str(e)})
            result.error = e
            break

        if not page.events:
            logger.debug("Fetched empty chunk, sync complete")
            break

        result.pages += 1
        logger.debug(
            "Fetched message chunk",
            extra={
                "count": len(page.events),
                "start_token": page.start_token,
                "end_token": page.end_token,
            },
        )

        try:
            await event_store.merge(room_path, page.events)
        except Exception as e:
            logger.error("Failed to process message chunk", extra={"error": str(e)})
            result.error = e
            break
        result.total_fetched += len(page.events)

        next_token = page.end_token
        if not next_token or next_token == current_token:
            logger.debug("Reached end of history (token did not change)")
            break

        current_token = next_token
        result.final_token = current_token

        try:
            await cancellable_sleep(fetch_delay, cancel_token)
        except BackupCancelledError as e:
            logger.warning("Fetch cancelled", extra={"token": current_token})
            result.error = e
            break

    return result
