import logging
import logging.handlers
from pathlib import Path

from rich.logging import RichHandler
from rich.console import Console

from .config import Settings

TRANSFER_LOGGER_NAME = "tosser.transfers"


def _rotating_file_handler(path: str, settings: Settings) -> logging.Handler:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.TimedRotatingFileHandler(
        filename=path,
        when="midnight",
        interval=1,
        backupCount=settings.log_retention_days,
        encoding="utf-8",
    )


def get_transfer_logger() -> logging.Logger:
    """Logger with one line per moved/copied file."""
    return logging.getLogger(TRANSFER_LOGGER_NAME)


def setup_logging(settings: Settings) -> None:
    """
    Configure console, log file and transfer log handlers.

    Safe to call again after a configuration reload; existing handlers
    are closed and replaced.
    """
    settings.log_directory.mkdir(parents=True, exist_ok=True)

    # Create Rich console handler for beautiful output
    console = Console(width=120)
    rich_handler = RichHandler(
        console=console,
        show_time=True,
        show_level=True,
        show_path=True,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
    )
    rich_handler.setLevel(settings.log_level)

    # File handler with detailed format for debugging
    file_format = (
        "%(asctime)s - %(levelname)s - "
        "%(filename)s:%(lineno)d in %(funcName)s() - "
        "%(message)s"
    )

    file_handler = _rotating_file_handler(settings.log_file_path, settings)
    file_handler.setLevel(settings.log_level)
    file_handler.setFormatter(logging.Formatter(file_format))

    # Configure root logger (catches everything)
    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level)

    # Clear any existing handlers to avoid duplicates
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.addHandler(rich_handler)
    root_logger.addHandler(file_handler)

    # Transfer log: kun til fil, ikke konsollen
    transfer_logger = get_transfer_logger()
    for handler in list(transfer_logger.handlers):
        transfer_logger.removeHandler(handler)
        handler.close()
    transfer_handler = _rotating_file_handler(settings.transfer_log_path, settings)
    transfer_handler.setFormatter(logging.Formatter("%(asctime)s - %(message)s"))
    transfer_logger.addHandler(transfer_handler)
    transfer_logger.setLevel(logging.INFO)
    transfer_logger.propagate = False

    # Silence noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logging.info(
        f"Logging initialized - File: {settings.log_file_path}, "
        f"Transfers: {settings.transfer_log_path}, "
        f"Level: {settings.log_level}, "
        f"Retention: {settings.log_retention_days} days"
    )
