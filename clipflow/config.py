import logging
import os
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Callable

from dotenv import load_dotenv
from rich.logging import RichHandler

# Load environment variables from the project root .env (if present)
load_dotenv(Path(__file__).resolve().parent.parent / ".env")


# --- Logging Configuration ---
# library modules use logging.getLogger(__name__); level comes from env LOG_LEVEL
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE_NAME = "clipflow.log"
_logging_configured = False


def _parse_level(value: str | None, default: int = logging.INFO) -> int:
    if not value:
        return default
    name = value.strip().upper()
    level = getattr(logging, name, default)
    return level if isinstance(level, int) else default


def _build_console_handler(level: int, isatty: Callable[[], bool] | None = None) -> logging.Handler:
    """Return a console handler. Use Rich in TTY, plain stream otherwise."""
    check_tty = isatty or sys.stderr.isatty
    if check_tty():
        handler: logging.Handler = RichHandler(
            show_time=False,
            show_path=False,
            rich_tracebacks=True,
            show_level=True,
            log_time_format="[%X]",
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(level)
    return handler


def _parse_backup_count(raw: str | None, default: int = 5) -> int:
    try:
        return max(0, int(str(raw).strip()))
    except (TypeError, ValueError):
        logging.warning("Invalid APP_LOG_BACKUP_COUNT=%r. Defaulting to %d.", raw, default)
        return default


def _build_file_handler(log_dir: Path, level: int, backup_count: int) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = TimedRotatingFileHandler(
        filename=log_dir / LOG_FILE_NAME,
        when="midnight",
        backupCount=backup_count,
        encoding="utf-8",
        utc=True,
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    file_handler.setLevel(level)
    return file_handler


def setup_logging(force: bool = False, level_name: str | None = None) -> None:
    """Configure the root logger once with console and optional file handler.

    Args:
        force: Reconfigure even if logging was already set up, replacing the root handlers
        level_name: Level to use instead of the LOG_LEVEL environment variable
    """
    global _logging_configured
    if _logging_configured and not force:
        return

    level = _parse_level(level_name or os.getenv("LOG_LEVEL", "INFO"))

    root = logging.getLogger()
    if force:
        for existing in list(root.handlers):
            root.removeHandler(existing)
            existing.close()
    root.setLevel(level)
    root.addHandler(_build_console_handler(level))

    # Optional file logging only when APP_LOG_DIR is set
    app_log_dir = os.getenv("APP_LOG_DIR")
    if app_log_dir:
        try:
            backup_count = _parse_backup_count(os.getenv("APP_LOG_BACKUP_COUNT", "5"))
            root.addHandler(_build_file_handler(Path(app_log_dir), level, backup_count))
        except (PermissionError, OSError) as e:
            logging.warning("Failed to configure file logging to '%s'. Error: %s", app_log_dir, e)

    # Reduce noise from HTTP and model-download libraries
    for noisy in (
        "httpx",
        "httpcore",
        "urllib3",
        "huggingface_hub",
        "faster_whisper",
    ):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    # Forward warnings module messages to logging
    logging.captureWarnings(True)

    _logging_configured = True


# --- End Logging Configuration ---
