"""Tests for cooperative cancellation."""

import asyncio

import pytest

from matrix_backup.cancellation import CancellationToken, cancellable_sleep
from matrix_backup.exceptions import BackupCancelledError


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_initial_state(self):
        token = CancellationToken()
        assert token.is_cancelled() is False
        token.raise_if_cancelled()

    def test_cancel(self):
        token = CancellationToken()
        token.cancel()
        assert token.is_cancelled() is True
        with pytest.raises(BackupCancelledError):
            token.raise_if_cancelled()

    async def test_sleep_completes(self):
        token = CancellationToken()
        await token.sleep(0.01)
        assert token.is_cancelled() is False

    async def test_sleep_interrupted(self):
        """A long wait ends as soon as the token is cancelled."""
        token = CancellationToken()
        loop = asyncio.get_running_loop()
        loop.call_later(0.01, token.cancel)

        with pytest.raises(BackupCancelledError):
            await asyncio.wait_for(token.sleep(30), timeout=5)

    async def test_cancellable_sleep_without_token(self):
        await cancellable_sleep(0, None)
        await cancellable_sleep(0.001, None)
