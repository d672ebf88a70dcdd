from __future__ import annotations

import logging
import os
import sys
from typing import Optional, Union

ROOT = "fpanel"
LEVEL_ENV = "FPANEL_LOG_LEVEL"


def _default_level() -> Union[int, str]:
    return os.environ.get(LEVEL_ENV, "INFO").upper()


def get_logger(
    name: str = ROOT, level: Optional[Union[int, str]] = None
) -> logging.Logger:
    """
    Stage logger writing ``[time] LEVEL name: message`` lines to stdout.

    The level defaults to ``$FPANEL_LOG_LEVEL`` (``INFO`` when unset).
    Repeated calls return the already configured logger.
    """
    logger = logging.getLogger(name)
    if logger.handlers:  # already configured
        return logger
    logger.setLevel(level if level is not None else _default_level())
    h = logging.StreamHandler(sys.stdout)
    h.setFormatter(
        logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s")
    )
    logger.addHandler(h)
    logger.propagate = False
    return logger


def set_level(level: Union[int, str]) -> None:
    """Change the level of every ``fpanel`` logger created so far."""
    for name in list(logging.root.manager.loggerDict):
        if name == ROOT or name.startswith(ROOT + "."):
            logging.getLogger(name).setLevel(level)
