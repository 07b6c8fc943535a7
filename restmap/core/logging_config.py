"""
Basic logging configuration.

The library itself only creates module level loggers under the
``restmap`` namespace; applications that embed it (such as the example
application) call ``setup_logging`` once at start-up to attach handlers
to the root logger.  The ``restmap`` loggers can be made more or less
verbose than the rest of the application.
"""

import logging
from pathlib import Path
from typing import Optional


LIBRARY_LOGGER = "restmap"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(threadName)s]: %(message)s"


def _level(name: Optional[str], default: int) -> int:
    if not name:
        return default
    return getattr(logging, name.upper(), default)


def setup_logging(
    level: str = "INFO",
    logfile: Optional[str] = None,
    library_level: Optional[str] = None,
) -> logging.Logger:
    """Configure the root logger and the ``restmap`` logger.

    Handlers are only attached when the root logger has none yet, so
    calling this again (a second ``create_app``, or under pytest) keeps
    the existing handlers.  The ``restmap`` level is always applied.

    Parameters
    ----------
    level : str
        Root logging level name (e.g. ``"DEBUG"``, ``"INFO"``).  Case
        insensitive.
    logfile : Optional[str]
        Path to a file to log messages to.  If omitted, no file
        handler is added.
    library_level : Optional[str]
        Level of the ``restmap`` loggers.  Defaults to ``level``.

    Returns
    -------
    logging.Logger
        The ``restmap`` logger.
    """
    root = logging.getLogger()
    library = logging.getLogger(LIBRARY_LOGGER)
    library.setLevel(_level(library_level or level, logging.INFO))

    if root.handlers:
        return library

    root.setLevel(_level(level, logging.INFO))
    # Completions run on transport worker threads, so the thread name is logged.
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if logfile:
        file_handler = logging.FileHandler(Path(logfile).resolve(), encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    return library
