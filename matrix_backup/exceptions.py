"""
Custom exceptions for matrix-backup.

Storage, remote and sync components raise these exceptions so that
the sync engine can decide what is fatal to the whole run, what is
fatal to a single room, and what is merely logged.
"""


class BackupError(Exception):
    """Base exception for all backup errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StorageIOError(BackupError):
    """Raised when a local storage I/O operation fails."""

    def __init__(self, operation: str, path: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        message = f"Storage I/O error during {operation}"
        if path:
            message += f": {path}"
        if cause:
            message += f" ({cause})"
        super().__init__(message, details)
        self.operation = operation
        self.path = path
        self.cause = cause


class DataDecodeError(StorageIOError):
    """Raised when a file exists but its contents cannot be decoded."""


class ConfigurationError(BackupError):
    """Raised when configuration is missing or invalid."""

    def __init__(self, message: str, path: str | None = None, cause: Exception | None = None):
        details: dict = {}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        super().__init__(message, details)
        self.path = path
        self.cause = cause


class MatrixHTTPError(BackupError):
    """Raised when the homeserver answers with a non-success status."""

    def __init__(
        self,
        status_code: int,
        errcode: str | None = None,
        error: str | None = None,
        endpoint: str | None = None,
    ):
        details: dict = {"status_code": status_code}
        if errcode:
            details["errcode"] = errcode
        if error:
            details["error"] = error
        if endpoint:
            details["endpoint"] = endpoint
        message = f"HTTP {status_code}"
        if errcode:
            message += f" {errcode}"
        if error:
            message += f": {error}"
        if endpoint:
            message += f" ({endpoint})"
        super().__init__(message, details)
        self.status_code = status_code
        self.errcode = errcode
        self.error = error
        self.endpoint = endpoint

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404 or self.errcode == "M_NOT_FOUND"


class RemoteConnectionError(BackupError):
    """Raised when the homeserver cannot be reached.

    Note: Named RemoteConnectionError to avoid shadowing the builtin ConnectionError.
    """

    def __init__(self, endpoint: str, cause: Exception | None = None):
        details = {"endpoint": endpoint}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Connection failed to {endpoint}", details)
        self.endpoint = endpoint
        self.cause = cause


class SessionVerificationError(BackupError):
    """Raised when the remote session cannot be verified before a run."""

    def __init__(self, reason: str, retryable: bool, attempts: int, cause: Exception | None = None):
        details: dict = {"reason": reason, "retryable": retryable, "attempts": attempts}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Failed to verify session: {reason}", details)
        self.reason = reason
        self.retryable = retryable
        self.attempts = attempts
        self.cause = cause


class RoomBackupError(BackupError):
    """Raised when a single room cannot be backed up."""

    def __init__(self, room_id: str, state: str, cause: Exception | None = None):
        details: dict = {"room_id": room_id, "state": state}
        if cause:
            details["cause"] = str(cause)
        message = f"Backup of room {room_id} failed during {state}"
        if cause:
            message += f": {cause}"
        super().__init__(message, details)
        self.room_id = room_id
        self.state = state
        self.cause = cause


class BackupCancelledError(BackupError):
    """Raised when a cooperative cancellation request interrupts work."""

    def __init__(self, message: str = "Backup cancelled"):
        super().__init__(message)
