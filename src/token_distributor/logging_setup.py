import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .config import Config

LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "verbose": logging.DEBUG,
    "debug": logging.DEBUG,
}

FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(config: Config, console: Optional[Console] = None) -> Optional[Path]:
    """
    Route package logs to the console and, if enabled, to timestamped files.

    Returns the main log file path, or None when logging to console only.
    """
    level = LEVELS.get(config.log_level, logging.INFO)
    root = logging.getLogger("token_distributor")
    root.setLevel(level)
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)
    root.propagate = False

    root.addHandler(RichHandler(console=console, level=level, show_path=False,
                                rich_tracebacks=True))

    if not config.log_to_file:
        return None

    log_dir = Path(config.log_dir)
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        root.warning(f"Could not create log directory {log_dir}, logging to console only: {e}")
        return None

    timestamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S")
    formatter = logging.Formatter(FILE_FORMAT)

    main_log = log_dir / f"distribution-{timestamp}.log"
    main_handler = logging.FileHandler(main_log, encoding="utf-8")
    main_handler.setLevel(level)
    main_handler.setFormatter(formatter)
    root.addHandler(main_handler)

    error_handler = logging.FileHandler(log_dir / f"errors-{timestamp}.log", encoding="utf-8")
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)
    root.addHandler(error_handler)

    return main_log
