"""Loguru-style logger backed by stdlib logging + rich.

Usage::

    from clustersync.observability.logger import logger

    log = logger.bind(component="reconciler")
    log.info("Cluster {cluster_id} is {state}", cluster_id="abc", state="RUNNING")

Records go to the ``clustersync`` logger hierarchy, named after the
calling module, so stdlib configuration (levels, handlers) applies too.
Bound extras are attached to each record as attributes.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from typing import TextIO

from rich.console import Console
from rich.logging import RichHandler

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_root = logging.getLogger("clustersync")


def _format_message(msg: str, args: tuple[object, ...], kwargs: dict[str, object]) -> str:
    if kwargs:
        return msg.format(**kwargs)
    if args:
        return msg.format(*args)
    return msg


class BoundLogger:
    __slots__ = ("_extras",)

    def __init__(self, extras: dict[str, object] | None = None) -> None:
        self._extras = extras or {}

    def bind(self, **kwargs: object) -> BoundLogger:
        return BoundLogger({**self._extras, **kwargs})

    def _log(self, level: int, message: str, /, *args: object, **kwargs: object) -> None:
        exc_info = bool(kwargs.pop("exc_info", False))
        # two frames up: caller -> level method -> _log
        frame = sys._getframe(2)
        module = frame.f_globals.get("__name__", "clustersync")
        lib_logger = logging.getLogger(module)
        if not lib_logger.isEnabledFor(level):
            return
        record = lib_logger.makeRecord(
            name=lib_logger.name,
            level=level,
            fn=frame.f_code.co_filename,
            lno=frame.f_lineno,
            msg=_format_message(message, args, kwargs),
            args=(),
            exc_info=sys.exc_info() if exc_info else None,
            func=frame.f_code.co_name,
            extra=dict(self._extras),
        )
        record.extras = self._extras  # type: ignore[attr-defined]
        lib_logger.handle(record)

    def trace(self, message: str, /, *args: object, **kwargs: object) -> None:
        self._log(TRACE, message, *args, **kwargs)

    def debug(self, message: str, /, *args: object, **kwargs: object) -> None:
        self._log(logging.DEBUG, message, *args, **kwargs)

    def info(self, message: str, /, *args: object, **kwargs: object) -> None:
        self._log(logging.INFO, message, *args, **kwargs)

    def warning(self, message: str, /, *args: object, **kwargs: object) -> None:
        self._log(logging.WARNING, message, *args, **kwargs)

    def error(self, message: str, /, *args: object, **kwargs: object) -> None:
        self._log(logging.ERROR, message, *args, **kwargs)

    def exception(self, message: str, /, *args: object, **kwargs: object) -> None:
        kwargs["exc_info"] = True
        self._log(logging.ERROR, message, *args, **kwargs)


class Logger(BoundLogger):
    """Root facade with sink management on top of ``bind``."""

    __slots__ = ("_handlers", "_counter")

    def __init__(self) -> None:
        super().__init__()
        self._handlers: dict[int, logging.Handler] = {}
        self._counter = 0

    def add(
        self,
        sink: str | TextIO,
        *,
        level: str = "INFO",
        rotation_mb: int = 50,
        retention: int = 10,
    ) -> int:
        """Attach a sink: a file path (rotating) or a text stream (rich)."""
        numeric_level = logging.getLevelName(level.upper())
        if not isinstance(numeric_level, int):
            numeric_level = logging.INFO

        match sink:
            case str() as path:
                handler: logging.Handler = logging.handlers.RotatingFileHandler(
                    path,
                    maxBytes=rotation_mb * 1024 * 1024,
                    backupCount=retention,
                )
                handler.setFormatter(logging.Formatter(
                    "%(asctime)s.%(msecs)03d | %(levelname)-8s | "
                    "%(name)s:%(funcName)s:%(lineno)d - %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                ))
            case stream:
                handler = RichHandler(
                    console=Console(file=stream),
                    show_time=True,
                    show_level=True,
                    show_path=True,
                    rich_tracebacks=True,
                )
        handler.setLevel(numeric_level)

        _root.addHandler(handler)
        self._counter += 1
        self._handlers[self._counter] = handler
        return self._counter

    def remove(self, handler_id: int | None = None) -> None:
        if handler_id is None:
            for h in self._handlers.values():
                _root.removeHandler(h)
            self._handlers.clear()
            return
        if h := self._handlers.pop(handler_id, None):
            _root.removeHandler(h)


logger = Logger()

_root.setLevel(TRACE)
_root.addHandler(logging.NullHandler())
