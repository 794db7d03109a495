"""
Command-line entry point for matrix-backup.

Usage:
    matrix-backup --server https://matrix.example.org --user @alice:example.org --token syt_...
    matrix-backup --config ~/.config/matrix-commander/credentials.json --dir ./backup

Exit status is 0 when every joined room was backed up, 1 otherwise.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from . import __version__
from .cancellation import CancellationToken
from .config import BackupConfig, load_and_validate_config
from .exceptions import BackupCancelledError, ConfigurationError, SessionVerificationError
from .logging_utils import configure_logging
from .remote.matrix import MatrixEventSource
from .sync.engine import BackupEngine

EXIT_OK = 0
EXIT_FAILURE = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="matrix-backup",
        description="Incrementally back up the timelines of all joined Matrix rooms",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Credentials can be given as flags, as MATRIX_BACKUP_* environment
variables, or in a matrix-commander credentials file. Flags win over
the file.

Examples:
    # Use the matrix-commander credentials file
    matrix-backup --dir ./backup

    # Explicit credentials
    matrix-backup --server https://matrix.example.org \\
        --user @alice:example.org --token syt_... --dir ./backup
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    creds = parser.add_argument_group("Credentials")
    creds.add_argument("--server", help="Matrix homeserver URL")
    creds.add_argument("--user", help="Matrix user ID")
    creds.add_argument("--token", help="Access token")
    creds.add_argument("--device", help="Device ID (optional)")
    creds.add_argument(
        "--config",
        help="Path to a JSON (or YAML) credentials file "
        "(default: ~/.config/matrix-commander/credentials.json)",
    )

    options = parser.add_argument_group("Options")
    options.add_argument("--dir", type=Path, help="Directory to store backups (default: ./backup)")
    options.add_argument("--fetch-delay", type=float, help="Delay between requests, in seconds")
    options.add_argument("--page-size", type=int, help="Events requested per page")
    options.add_argument(
        "--max-verify-retries",
        type=int,
        help="Maximum credential verification attempts (0 = unlimited)",
    )
    options.add_argument("--debug", action="store_true", default=None, help="Enable debug logging")
    options.add_argument(
        "--log-json", action="store_true", default=None, help="Output logs in JSON format"
    )
    options.add_argument("--log-color", action="store_true", default=None, help="Color logs")
    return parser


def config_from_args(args: argparse.Namespace) -> BackupConfig:
    """Overlay parsed flags on the environment configuration."""
    config = BackupConfig.from_env()

    overrides = {
        "homeserver": args.server,
        "user_id": args.user,
        "access_token": args.token,
        "device_id": args.device,
        "credentials_file": args.config,
        "backup_dir": args.dir,
        "fetch_delay": args.fetch_delay,
        "page_size": args.page_size,
        "max_verify_attempts": args.max_verify_retries,
        "debug": args.debug,
        "log_json": args.log_json,
        "log_color": args.log_color,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)
    return config


def _install_signal_handlers(cancel_token: CancellationToken) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, cancel_token.cancel)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform; Ctrl+C falls back to KeyboardInterrupt
            pass


async def run_backup(
    config: BackupConfig,
    logger: logging.Logger,
    cancel_token: CancellationToken | None = None,
) -> int:
    """Run a full backup with a validated configuration.

    Returns:
        Process exit status
    """
    logger.info("Starting Matrix backup process...")
    extra = {
        "server": config.homeserver,
        "user": config.user_id,
        "backup_dir": str(config.backup_dir),
    }
    if config.device_id:
        extra["device_id"] = config.device_id
    logger.info("Configuration", extra=extra)

    async with MatrixEventSource(
        homeserver=config.homeserver,
        user_id=config.user_id,
        access_token=config.access_token,
        device_id=config.device_id,
        logger=logger,
    ) as source:
        engine = BackupEngine(
            source,
            config.backup_dir,
            logger,
            config=config.sync_config(),
            cancel_token=cancel_token,
        )
        try:
            result = await engine.run(config.retry_policy())
        except SessionVerificationError as e:
            logger.error("Initialization failed", extra={"error": str(e)})
            return EXIT_FAILURE
        except BackupCancelledError:
            logger.warning("Matrix backup process cancelled.")
            return EXIT_FAILURE
        except Exception as e:
            logger.error("Matrix backup process failed", extra={"error": str(e)})
            return EXIT_FAILURE

    if not result.success:
        logger.error(
            "Matrix backup process finished with errors.",
            extra={"failed_rooms": len(result.failed_rooms), "cancelled": result.cancelled},
        )
        return EXIT_FAILURE

    logger.info(
        "Matrix backup process finished successfully.",
        extra={"rooms": len(result.results), "events": result.total_events},
    )
    return EXIT_OK


async def _main(config: BackupConfig, logger: logging.Logger) -> int:
    cancel_token = CancellationToken()
    _install_signal_handlers(cancel_token)
    return await run_backup(config, logger, cancel_token)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
    except ConfigurationError as e:
        configure_logging()
        logging.getLogger("matrix_backup").error("Configuration error", extra={"error": str(e)})
        return EXIT_FAILURE

    logger = configure_logging(
        debug=config.debug, json_output=config.log_json, color=config.log_color
    )

    try:
        load_and_validate_config(config, logger)
    except ConfigurationError as e:
        logger.error("Configuration error", extra={"error": str(e)})
        return EXIT_FAILURE

    try:
        return asyncio.run(_main(config, logger))
    except KeyboardInterrupt:
        logger.warning("Matrix backup process interrupted.")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
