"""Retry policy for verifying the remote session.

Before any room is synced the engine checks that the homeserver
accepts the configured credentials. Transport failures, 5xx answers
and rate limiting are retried after a fixed delay (forever, unless a
maximum is configured); any other failure aborts the run.

Per-page fetch errors are not retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

import aiohttp

from ..cancellation import CancellationToken, cancellable_sleep
from ..exceptions import BackupCancelledError, RemoteConnectionError, SessionVerificationError
from ..types import SessionInfo
from .base import EventSource

DEFAULT_RETRY_DELAY = 10.0  # seconds

RATE_LIMITED_STATUS = 429

RETRYABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    RemoteConnectionError,
    aiohttp.ClientConnectionError,
    aiohttp.ClientPayloadError,
    ConnectionError,
    TimeoutError,
    EOFError,
)


class ErrorClass(Enum):
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass
class RetryPolicy:
    """Fixed-delay retry policy.

    ``max_attempts`` counts every call, the first one included; None
    means retry forever. Override :meth:`delay_for` to use a growing
    delay instead.
    """

    delay_seconds: float = DEFAULT_RETRY_DELAY
    max_attempts: int | None = None

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        return self.delay_seconds

    def should_give_up(self, attempts: int) -> bool:
        return self.max_attempts is not None and attempts >= self.max_attempts


def _extract_status_code(exc: BaseException) -> int | None:
    """Try to extract an HTTP status code from an exception."""
    status = getattr(exc, "status_code", None)
    if status is not None:
        return int(status)
    # aiohttp.ClientResponseError
    status = getattr(exc, "status", None)
    if isinstance(status, int):
        return status
    return None


def classify_error(exc: BaseException) -> ErrorClass:
    """Decide whether a failed handshake is worth retrying.

    - HTTP 5xx and 429: retryable
    - Other HTTP 4xx: fatal
    - Connection refused, DNS failure, timeout, truncated stream: retryable
    - Anything else: fatal
    """
    status_code = _extract_status_code(exc)
    if status_code is not None:
        if status_code >= 500 or status_code == RATE_LIMITED_STATUS:
            return ErrorClass.RETRYABLE
        if 400 <= status_code < 500:
            return ErrorClass.FATAL

    if isinstance(exc, RETRYABLE_EXCEPTIONS):
        return ErrorClass.RETRYABLE
    return ErrorClass.FATAL


async def verify_session_with_retry(
    source: EventSource,
    policy: RetryPolicy,
    logger: logging.Logger | logging.LoggerAdapter,
    cancel_token: CancellationToken | None = None,
) -> SessionInfo:
    """Verify the remote session, retrying transient failures.

    Args:
        source: Event source to verify
        policy: Retry policy
        logger: Logger receiving one record per failed attempt
        cancel_token: Optional token; checked before each call and during waits

    Returns:
        Session info reported by the source

    Raises:
        SessionVerificationError: On a fatal error or when attempts are exhausted
        BackupCancelledError: If cancelled
    """
    attempts = 0
    while True:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        attempts += 1
        try:
            info = await source.verify_session()
        except BackupCancelledError:
            raise
        except Exception as exc:
            error_class = classify_error(exc)
            status_code = _extract_status_code(exc)
            logger.error(
                "Failed to verify credentials",
                extra={
                    "attempt": attempts,
                    "status_code": status_code,
                    "retryable": error_class == ErrorClass.RETRYABLE,
                    "error": str(exc),
                },
            )

            if error_class == ErrorClass.FATAL:
                logger.error("Non-retryable error during session verification. Will not retry.")
                raise SessionVerificationError(
                    "non-retryable error", retryable=False, attempts=attempts, cause=exc
                ) from exc

            if policy.should_give_up(attempts):
                logger.error(
                    "Reached max attempts for session verification. Giving up.",
                    extra={"max_attempts": policy.max_attempts},
                )
                raise SessionVerificationError(
                    f"giving up after {attempts} attempts",
                    retryable=True,
                    attempts=attempts,
                    cause=exc,
                ) from exc

            delay = policy.delay_for(attempts)
            logger.info(
                "Server unavailable or network issue. Retrying after delay...",
                extra={"attempt": attempts, "retry_delay": delay},
            )
            await cancellable_sleep(delay, cancel_token)
            continue

        if attempts > 1:
            logger.warning(
                "Session verification succeeded after retries",
                extra={"attempt": attempts},
            )
        logger.info(
            "Successfully logged in",
            extra={"user_id": info.user_id, "device_id": info.device_id},
        )
        return info
