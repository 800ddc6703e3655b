"""
lottolab/utils/logger.py
Package-wide logger: Rich console plus one rotating file per game.

Every module logger is a child of the "lottolab" logger, which owns the
handlers, so `get_logger("pipeline.backtest")` writes to the same console
and file as the rest of the package under the name "lottolab.pipeline.backtest".
"""
import logging
import os
from logging.handlers import RotatingFileHandler

from rich.logging import RichHandler

ROOT_NAME = "lottolab"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_loggers: dict[str, logging.Logger] = {}


def log_file_path() -> str:
    """logs/lottolab_<game>.log, with LOG_DIR and LOTTOLAB_GAME from the environment."""
    game = os.getenv("LOTTOLAB_GAME", "powerball")
    return os.path.join(os.getenv("LOG_DIR", "logs"), f"{ROOT_NAME}_{game}.log")


def _root_logger() -> logging.Logger:
    root = logging.getLogger(ROOT_NAME)
    if root.handlers:
        return root

    level = os.getenv("LOG_LEVEL", "INFO").upper()
    root.setLevel(getattr(logging, level, logging.INFO))

    console = RichHandler(rich_tracebacks=True, show_path=False)
    console.setLevel(logging.DEBUG)
    root.addHandler(console)

    # LOG_TO_FILE=0 keeps output on the console only
    if os.getenv("LOG_TO_FILE", "1") != "0":
        path = log_file_path()
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        root.addHandler(file_handler)

    return root


def get_logger(name: str = ROOT_NAME) -> logging.Logger:
    if name in _loggers:
        return _loggers[name]

    root = _root_logger()
    logger = root if name == ROOT_NAME else root.getChild(name)
    _loggers[name] = logger
    return logger
