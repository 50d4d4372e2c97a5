"""Application Bootstrap (Entry Point)."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .cli import CliState, app
from .config import Settings, load_settings
from .errors import ConfigurationError

# Logging configuration constants
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024  # 5MB max log file size
LOG_FILE_BACKUP_COUNT = 3  # Keep 3 backup log files

# Handlers installed by setup_logging, replaced on each call
_installed_handlers: list[logging.Handler] = []


def setup_logging(config_path: Optional[Path] = None) -> None:
    """Configure application-wide logging from the selected config file.

    Logs to a rotating file (log_file, default ~/.notevec/data/notevec.log)
    and WARNING+ to stderr. If the configuration is invalid, logging still
    starts with the defaults; the command itself reports the error.
    """
    try:
        settings = load_settings(config_path)
        log_file, log_level = settings.log_file, settings.log_level
    except ConfigurationError as e:
        print(f"Warning: Failed to load settings for logging: {e}", file=sys.stderr)
        log_file = Settings.model_fields["log_file"].default
        log_level = Settings.model_fields["log_level"].default

    log_file.parent.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    file_handler.setLevel(logging.DEBUG)

    # Status lines go to stdout, so stderr only carries problems
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("%(levelname)-8s | %(name)s | %(message)s"))
    console_handler.setLevel(logging.WARNING)

    root_logger = logging.getLogger()
    for handler in _installed_handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _installed_handlers[:] = [file_handler, console_handler]

    root_logger.setLevel(getattr(logging, log_level))
    for handler in _installed_handlers:
        root_logger.addHandler(handler)

    for noisy in ("httpx", "httpcore", "chromadb"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def main() -> None:
    """Main entry point for the notevec CLI.

    Logging is configured by the CLI callback once --config is parsed.
    """
    app(obj=CliState(configure_logging=setup_logging))


if __name__ == "__main__":
    main()
