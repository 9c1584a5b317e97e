from __future__ import annotations

import logging
import sys
from typing import Union

_APP_LOGGER_PREFIX = __name__.rsplit(".", 1)[0] + "."
_HANDLER_NAME = "task-backend-console"


class _ThirdPartyNoiseFilter(logging.Filter):
    """
    Keep the console readable:
    - allow every log record from this service
    - let uvicorn access/error logs through
    - suppress third-party noise (httpx request lines, openai client chatter) unless WARNING+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith(_APP_LOGGER_PREFIX) or name.startswith("uvicorn"):
            return True
        return record.levelno >= logging.WARNING


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Configure a single stderr handler on the root logger.

    Safe to call more than once: only the handler installed by a previous
    call is replaced, handlers added by other tools are left alone.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    for h in list(root.handlers):
        if h.get_name() == _HANDLER_NAME:
            root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.set_name(_HANDLER_NAME)
    ch.setLevel(level)
    ch.setFormatter(fmt)
    ch.addFilter(_ThirdPartyNoiseFilter())
    root.addHandler(ch)

    # Route warnings.warn(...) into logging as 'py.warnings'
    logging.captureWarnings(True)
