"""Cooperative cancellation for the backup run.

The sync engine never interrupts a write mid-way. Instead it checks a
:class:`CancellationToken` before every remote call and waits on it
during delays, so a cancelled run stops at a point where the
checkpoint still matches the merged data.
"""

from __future__ import annotations

import asyncio

from .exceptions import BackupCancelledError


class CancellationToken:
    """Cancellation flag that delays can wait on.

    Examples:
        >>> token = CancellationToken()
        >>> token.raise_if_cancelled()  # no-op
        >>> token.cancel()
        >>> token.is_cancelled()
        True
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        """Signal that cancellation has been requested."""
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise BackupCancelledError if cancellation was requested."""
        if self._event.is_set():
            raise BackupCancelledError()

    async def sleep(self, delay: float) -> None:
        """Wait for ``delay`` seconds unless cancelled first.

        Raises:
            BackupCancelledError: If cancellation is requested before or during the wait
        """
        self.raise_if_cancelled()
        if delay <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except TimeoutError:
            return
        raise BackupCancelledError()


async def cancellable_sleep(delay: float, token: CancellationToken | None) -> None:
    """Sleep, honouring ``token`` when one is given."""
    if token is None:
        if delay > 0:
            await asyncio.sleep(delay)
        return
    await token.sleep(delay)
