"""Process-wide logging setup: rich console, dated files and context metadata."""
from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from logging.handlers import BaseRotatingHandler, QueueHandler, QueueListener
from pathlib import Path
from queue import SimpleQueue
from threading import RLock
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.traceback import install as install_rich_traceback

from ..config import get_settings
from ..encoding import JsonFormatter
from .filters import ContextFilter

__all__ = [
    "ContextFilter",
    "DailyFileHandler",
    "LoggingConfig",
    "init_logging",
    "get_logger",
    "set_level",
    "shutdown_logging",
]

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(context_text)s%(message)s"


@dataclass(frozen=True)
class LoggingConfig:
    """Runtime configuration for the logging subsystem."""

    app_name: str = "logctx"
    level: str | int = "INFO"
    log_dir: Optional[Path] = None
    console: bool = True
    rich_tracebacks: bool = True
    queue: bool = True
    json: bool = False


@dataclass
class _Installed:
    config: LoggingConfig
    sinks: list[logging.Handler] = field(default_factory=list)
    listener: QueueListener | None = None


_lock = RLock()
_installed: _Installed | None = None
_context_filter = ContextFilter()


def _to_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    name = str(level).strip().upper()
    if name.isdigit():
        return int(name)
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


class DailyFileHandler(BaseRotatingHandler):
    """Write records to ``<directory>/<date><suffix>``, one file per calendar day.

    The day is taken from ``record.created``, so a record from a new day
    switches the file before it is written.
    """

    def __init__(
        self,
        directory: Path,
        *,
        suffix: str = ".log",
        date_format: str = "%Y_%m_%d",
        encoding: str = "utf-8",
    ) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.suffix = suffix
        self.date_format = date_format
        self.day: date = date.today()
        super().__init__(self.path_for(self.day), "a", encoding=encoding)

    def path_for(self, day: date) -> str:
        return os.path.abspath(self.directory / f"{day.strftime(self.date_format)}{self.suffix}")

    def shouldRollover(self, record: logging.LogRecord) -> bool:
        record_day = datetime.fromtimestamp(record.created).date()
        if record_day == self.day:
            return False
        self.day = record_day
        return True

    def doRollover(self) -> None:
        if self.stream:
            self.stream.close()
            self.stream = None
        self.baseFilename = self.path_for(self.day)
        self.stream = self._open()


class _RecordQueueHandler(QueueHandler):
    """Queue records with their message resolved but exception info intact.

    The stock ``prepare`` folds the traceback into the message, which would
    leave nothing for the JSON formatter to render as ``exception``.
    """

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        record = copy.copy(record)
        record.msg = record.getMessage()
        record.args = None
        return record


def _sinks(cfg: LoggingConfig, level: int) -> list[logging.Handler]:
    sinks: list[logging.Handler] = []

    if cfg.console:
        if cfg.rich_tracebacks:
            install_rich_traceback(show_locals=False)
        console = RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=cfg.rich_tracebacks,
            show_path=False,
            markup=False,
            log_time_format="%Y-%m-%d %H:%M:%S",
        )
        console.setFormatter(logging.Formatter("%(context_text)s%(message)s"))
        sinks.append(console)

    if cfg.log_dir:
        if cfg.json:
            file_sink = DailyFileHandler(Path(cfg.log_dir), suffix=".jsonl")
            file_sink.setFormatter(JsonFormatter())
        else:
            file_sink = DailyFileHandler(Path(cfg.log_dir))
            file_sink.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        sinks.append(file_sink)

    for sink in sinks:
        sink.setLevel(level)
        sink.addFilter(_context_filter)
    return sinks


def init_logging(**kwargs: object) -> None:
    """Install the root handlers described by ``kwargs`` (see :class:`LoggingConfig`).

    Calling again with the same options is a no-op; different options tear
    the previous setup down first. Unknown keyword arguments are ignored.
    With ``queue=True`` the sinks run on a listener thread and the ambient
    metadata is captured on the emitting thread by the queue handler's filter.
    """

    known = {f.name for f in fields(LoggingConfig)}
    cfg = replace(LoggingConfig(), **{k: v for k, v in kwargs.items() if k in known})

    global _installed
    with _lock:
        if _installed is not None:
            if _installed.config == cfg:
                return
            _uninstall()

        level = _to_level(cfg.level)
        root = logging.getLogger()
        root.setLevel(logging.NOTSET)
        for handler in list(root.handlers):
            root.removeHandler(handler)

        installed = _Installed(config=cfg, sinks=_sinks(cfg, level))
        if cfg.queue and installed.sinks:
            log_queue: SimpleQueue = SimpleQueue()
            entry = _RecordQueueHandler(log_queue)
            entry.setLevel(level)
            entry.addFilter(_context_filter)
            root.addHandler(entry)
            installed.listener = QueueListener(
                log_queue, *installed.sinks, respect_handler_level=True
            )
            installed.listener.start()
        else:
            for sink in installed.sinks:
                root.addHandler(sink)
        _installed = installed


def _uninstall() -> None:
    global _installed
    if _installed is None:
        return
    if _installed.listener is not None:
        _installed.listener.stop()
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for sink in _installed.sinks:
        sink.close()
    _installed = None


def shutdown_logging() -> None:
    """Flush and close every handler installed by :func:`init_logging`."""

    with _lock:
        _uninstall()


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger, configuring logging from the environment on first use."""

    with _lock:
        if _installed is None:
            init_logging(**get_settings().logging_kwargs())
        app_name = _installed.config.app_name if _installed else "logctx"
    return logging.getLogger(name or app_name)


def set_level(level: str | int) -> None:
    """Change the threshold of the root handlers and of the sinks behind the queue."""

    new_level = _to_level(level)
    with _lock:
        targets = list(logging.getLogger().handlers)
        if _installed is not None:
            targets.extend(s for s in _installed.sinks if s not in targets)
        for handler in targets:
            handler.setLevel(new_level)
