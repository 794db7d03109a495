"""
Remote event sources.

- EventSource: Abstract interface used by the sync engine
- MatrixEventSource: Matrix client-server API implementation
- RetryPolicy / verify_session_with_retry: Handshake retry handling
"""

from .base import DIRECTION_BACKWARD, DIRECTION_FORWARD, EventSource
from .matrix import MatrixEventSource
from .retry import ErrorClass, RetryPolicy, classify_error, verify_session_with_retry

__all__ = [
    "EventSource",
    "MatrixEventSource",
    "DIRECTION_FORWARD",
    "DIRECTION_BACKWARD",
    "ErrorClass",
    "RetryPolicy",
    "classify_error",
    "verify_session_with_retry",
]
