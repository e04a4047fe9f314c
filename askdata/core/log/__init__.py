"""Logging for the service and its scripts.

Records go to a rich console on stderr and, when a log directory is set, to
one file per day named ``<app_name>_YYYY_MM_DD.log``. Handlers sit behind a
queue listener so request handlers never block on file I/O.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date, datetime
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from queue import SimpleQueue
from threading import RLock
from typing import Optional, Tuple

from rich.console import Console
from rich.logging import RichHandler
from rich.traceback import install as install_rich_traceback

from askdata.core.config import LoggingSettings

from .context import ContextFilter, log_context
from .timing import timeit

__all__ = [
    "LoggingConfig",
    "init_logging",
    "get_logger",
    "set_level",
    "shutdown_logging",
    "log_context",
    "timeit",
]

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(context)s%(message)s"
CONSOLE_FORMAT = "%(context)s%(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Client libraries that log every request at INFO.
CHATTY_LOGGERS: Tuple[str, ...] = ("httpx", "httpcore", "uvicorn.access")


@dataclass
class LoggingConfig:
    """Runtime configuration for the logging subsystem."""

    app_name: str = "askdata"
    level: str | int = "INFO"
    log_dir: Optional[Path] = Path("logs")
    console: bool = True
    rich_tracebacks: bool = True
    queue: bool = True
    quiet_libraries: bool = True

    @classmethod
    def from_settings(cls, settings: LoggingSettings, **overrides: object) -> "LoggingConfig":
        cfg = cls(level=settings.level, log_dir=settings.log_dir)
        for key, value in overrides.items():
            if hasattr(cfg, key):
                setattr(cfg, key, value)
        return cfg


_lock = RLock()
_active: LoggingConfig | None = None
_listener: QueueListener | None = None
_installed: list[logging.Handler] = []
_context_filter = ContextFilter()


def _parse_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)


class DailyFileHandler(logging.FileHandler):
    """File handler that starts a new ``<prefix>_YYYY_MM_DD.log`` when the date changes."""

    def __init__(self, directory: Path, prefix: str, *, encoding: str = "utf-8") -> None:
        self.directory = Path(directory)
        self.prefix = prefix
        self.directory.mkdir(parents=True, exist_ok=True)
        self.day: date = datetime.now().date()
        super().__init__(self.path_for(self.day), mode="a", encoding=encoding)

    def path_for(self, day: date) -> Path:
        return self.directory / f"{self.prefix}_{day:%Y_%m_%d}.log"

    def emit(self, record: logging.LogRecord) -> None:
        day = datetime.fromtimestamp(record.created).date()
        if day != self.day:
            self.day = day
            if self.stream:
                self.stream.close()
            self.baseFilename = os.fspath(self.path_for(day))
            self.stream = self._open()
        super().emit(record)


def _console_handler(cfg: LoggingConfig) -> logging.Handler:
    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=cfg.rich_tracebacks,
        show_path=False,
        markup=False,
        log_time_format=DATE_FORMAT,
    )
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def _file_handler(cfg: LoggingConfig) -> logging.Handler:
    handler = DailyFileHandler(Path(cfg.log_dir), cfg.app_name)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _sink_handlers(cfg: LoggingConfig, level: int) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    if cfg.console:
        handlers.append(_console_handler(cfg))
    if cfg.log_dir:
        handlers.append(_file_handler(cfg))
    for handler in handlers:
        handler.setLevel(level)
        handler.addFilter(_context_filter)
    return handlers


def init_logging(settings: Optional[LoggingSettings] = None, **overrides: object) -> None:
    """Install the handlers described by ``settings`` and ``overrides``.

    Calling again with an equal configuration is a no-op; a different one
    replaces the installed handlers.
    """

    global _active, _listener

    cfg = LoggingConfig.from_settings(settings or LoggingSettings(), **overrides)

    with _lock:
        if _active == cfg:
            return
        _teardown()

        level = _parse_level(cfg.level)
        if cfg.rich_tracebacks:
            install_rich_traceback(show_locals=False)

        root = logging.getLogger()
        root.setLevel(logging.NOTSET)
        for handler in list(root.handlers):
            root.removeHandler(handler)

        sinks = _sink_handlers(cfg, level)
        if cfg.queue and sinks:
            # The filter runs on the emitting thread so the context vars are visible.
            queue_handler = QueueHandler(SimpleQueue())
            queue_handler.setLevel(level)
            queue_handler.addFilter(_context_filter)
            root.addHandler(queue_handler)
            _installed.append(queue_handler)
            _listener = QueueListener(queue_handler.queue, *sinks, respect_handler_level=True)
            _listener.start()
        else:
            for handler in sinks:
                root.addHandler(handler)
                _installed.append(handler)

        if cfg.quiet_libraries:
            for name in CHATTY_LOGGERS:
                logging.getLogger(name).setLevel(max(level, logging.WARNING))

        _active = cfg


def _teardown() -> None:
    global _active, _listener
    if _listener is not None:
        _listener.stop()
        for handler in _listener.handlers:
            handler.close()
    _listener = None
    _active = None
    root = logging.getLogger()
    while _installed:
        handler = _installed.pop()
        root.removeHandler(handler)
        handler.close()


def shutdown_logging() -> None:
    """Stop the queue listener and close every handler."""

    with _lock:
        _teardown()


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(name or (_active or LoggingConfig()).app_name)


def set_level(level: str | int) -> None:
    """Change the level of every installed handler, including those behind the queue."""

    new_level = _parse_level(level)
    with _lock:
        handlers = list(logging.getLogger().handlers)
        if _listener is not None:
            handlers.extend(_listener.handlers)
        for handler in handlers:
            handler.setLevel(new_level)
        if _active is not None:
            _active.level = new_level
