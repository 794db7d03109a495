"""
Configuration for matrix-backup.

Credentials can come from command-line flags, ``MATRIX_BACKUP_*``
environment variables, or a matrix-commander style credentials file.
Explicit values always win; the file only fills gaps.

Credentials file (``~/.config/matrix-commander/credentials.json``):

```json
{
  "homeserver": "https://matrix.example.org",
  "user_id": "@alice:example.org",
  "access_token": "syt_...",
  "device_id": "ABCDEFGHIJ"
}
```

The same keys may be written as YAML when the file ends in ``.yaml``
or ``.yml``.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError
from .remote.retry import DEFAULT_RETRY_DELAY, RetryPolicy
from .sync.engine import SyncConfig
from .sync.fetch_loop import DEFAULT_FETCH_DELAY, DEFAULT_PAGE_SIZE

DEFAULT_CREDENTIALS_FILE = "~/.config/matrix-commander/credentials.json"
DEFAULT_BACKUP_DIR = "./backup"

ENV_PREFIX = "MATRIX_BACKUP_"

YAML_SUFFIXES = frozenset({".yaml", ".yml"})


def _env_bool(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("1", "true", "yes")


@dataclass
class CredentialsFile:
    """Credentials as stored by matrix-commander."""

    homeserver: str = ""
    user_id: str = ""
    access_token: str = ""
    device_id: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CredentialsFile:
        def text(key: str) -> str:
            value = data.get(key)
            return value if isinstance(value, str) else ""

        return cls(
            homeserver=text("homeserver"),
            user_id=text("user_id"),
            access_token=text("access_token"),
            device_id=text("device_id"),
        )


@dataclass
class BackupConfig:
    """Settings for one backup run."""

    # Credentials
    homeserver: str = ""
    user_id: str = ""
    access_token: str = ""
    device_id: str = ""
    credentials_file: str | None = DEFAULT_CREDENTIALS_FILE

    # Backup behaviour
    backup_dir: Path = field(default_factory=lambda: Path(DEFAULT_BACKUP_DIR))
    fetch_delay: float = DEFAULT_FETCH_DELAY  # seconds
    page_size: int = DEFAULT_PAGE_SIZE
    max_verify_attempts: int = 0  # 0 = retry forever
    verify_retry_delay: float = DEFAULT_RETRY_DELAY  # seconds

    # Logging
    debug: bool = False
    log_json: bool = False
    log_color: bool = False

    @classmethod
    def from_env(cls) -> BackupConfig:
        """Create configuration from environment variables.

        Unset variables keep their defaults.

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed
        """
        env = os.environ

        def number(name: str, default: Any, kind: type) -> Any:
            raw = env.get(ENV_PREFIX + name)
            if raw is None or raw == "":
                return default
            try:
                return kind(raw)
            except ValueError as e:
                raise ConfigurationError(
                    f"invalid value for {ENV_PREFIX + name}: {raw!r}", cause=e
                ) from e

        return cls(
            homeserver=env.get(ENV_PREFIX + "SERVER", ""),
            user_id=env.get(ENV_PREFIX + "USER", ""),
            access_token=env.get(ENV_PREFIX + "TOKEN", ""),
            device_id=env.get(ENV_PREFIX + "DEVICE", ""),
            credentials_file=env.get(ENV_PREFIX + "CONFIG", DEFAULT_CREDENTIALS_FILE),
            backup_dir=Path(env.get(ENV_PREFIX + "DIR", DEFAULT_BACKUP_DIR)),
            fetch_delay=number("FETCH_DELAY", DEFAULT_FETCH_DELAY, float),
            page_size=number("PAGE_SIZE", DEFAULT_PAGE_SIZE, int),
            max_verify_attempts=number("MAX_VERIFY_RETRIES", 0, int),
            verify_retry_delay=number("VERIFY_RETRY_DELAY", DEFAULT_RETRY_DELAY, float),
            debug=_env_bool(ENV_PREFIX + "DEBUG"),
            log_json=_env_bool(ENV_PREFIX + "LOG_JSON"),
            log_color=_env_bool(ENV_PREFIX + "LOG_COLOR"),
        )

    def retry_policy(self) -> RetryPolicy:
        """Retry policy for session verification."""
        max_attempts = self.max_verify_attempts if self.max_verify_attempts > 0 else None
        return RetryPolicy(delay_seconds=self.verify_retry_delay, max_attempts=max_attempts)

    def sync_config(self) -> SyncConfig:
        return SyncConfig(page_size=self.page_size, fetch_delay=self.fetch_delay)


def load_credentials_file(
    path: str | Path | None,
    logger: logging.Logger | logging.LoggerAdapter,
) -> CredentialsFile | None:
    """Load a credentials file.

    A missing file is not an error: credentials may come from flags
    instead.

    Returns:
        Parsed credentials, or None if no path is set or the file does not exist

    Raises:
        ConfigurationError: If the file cannot be read or parsed
    """
    if not path:
        return None

    config_path = Path(path).expanduser()
    logger.info("Loading credentials from config file", extra={"path": str(config_path)})

    try:
        content = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.warning(
            "Config file specified but not found, relying on CLI flags or defaults",
            extra={"path": str(config_path)},
        )
        return None
    except OSError as e:
        logger.error("Failed to read config file", extra={"path": str(config_path), "error": str(e)})
        raise ConfigurationError(
            f"failed to read config file {config_path}: {e}", path=str(config_path), cause=e
        ) from e

    try:
        if config_path.suffix.lower() in YAML_SUFFIXES:
            data = yaml.safe_load(content) or {}
        else:
            data = json.loads(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        logger.error("Failed to parse config file", extra={"path": str(config_path), "error": str(e)})
        raise ConfigurationError(
            f"failed to parse config file {config_path}: {e}", path=str(config_path), cause=e
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"failed to parse config file {config_path}: expected an object",
            path=str(config_path),
        )
    return CredentialsFile.from_dict(data)


def merge_credentials(config: BackupConfig, creds: CredentialsFile | None) -> BackupConfig:
    """Fill unset credentials from the file, then check the required ones.

    Modifies and returns ``config``.

    Raises:
        ConfigurationError: Listing every required credential still missing
    """
    if creds is not None:
        if not config.homeserver:
            config.homeserver = creds.homeserver
        if not config.user_id:
            config.user_id = creds.user_id
        if not config.access_token:
            config.access_token = creds.access_token
        if not config.device_id:
            config.device_id = creds.device_id

    missing = []
    if not config.homeserver:
        missing.append("Server (--server or config file)")
    if not config.user_id:
        missing.append("User (--user or config file)")
    if not config.access_token:
        missing.append("Token (--token or config file)")

    if missing:
        raise ConfigurationError("missing required credentials: " + ", ".join(missing))
    return config


def load_and_validate_config(
    config: BackupConfig,
    logger: logging.Logger | logging.LoggerAdapter,
) -> BackupConfig:
    """Load the credentials file (if any) and merge it into ``config``."""
    creds = load_credentials_file(config.credentials_file, logger)
    return merge_credentials(config, creds)
