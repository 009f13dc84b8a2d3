# serial_term/logger/logger.py
from __future__ import annotations

import logging
import os
import threading
from logging.handlers import RotatingFileHandler
from typing import Optional

from serial_term.core.settings import LoggingSettings

ROOT_LOGGER = "serial_term"


class RepeatFilter(logging.Filter):
    """
    Drop a record whose text matches the previous one from the same logger.
    A flapping device repeats the same read error; one copy per run is enough.
    `suppressed` counts what was dropped.
    """
    def __init__(self) -> None:
        super().__init__()
        self.suppressed = 0
        self._lock = threading.Lock()
        self._last: dict[str, str] = {}  # logger name -> last message

    def filter(self, record: logging.LogRecord) -> bool:
        msg = record.getMessage()
        with self._lock:
            if self._last.get(record.name) == msg:
                self.suppressed += 1
                return False
            self._last[record.name] = msg
        return True


class Logger:
    """
    Rotating file logger for the terminal, with repeat suppression.

    Every module logs through logging.getLogger(__name__); since they all live
    under the 'serial_term' package, configuring that one logger covers them.
    The console handler is off by default because stdout belongs to the
    terminal view while it is in raw mode.
    """
    def __init__(
        self,
        log_file: str,
        logger_name: str = ROOT_LOGGER,
        log_dir: str = "logs",
        level: int = logging.INFO,
        timestamp_format: str = "%Y-%m-%d %H:%M:%S",
        propagate: bool = False,
        max_bytes: int = 1_000_000,
        backup_count: int = 3,
        console: bool = False,
    ) -> None:
        os.makedirs(log_dir, exist_ok=True)
        full_log_path = os.path.join(log_dir, log_file)

        _logger = logging.getLogger(logger_name)
        _logger.setLevel(level)
        _logger.propagate = propagate

        # Avoid duplicate handlers when built twice in one process (common in pytest)
        if not _logger.handlers:
            fmt = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt=timestamp_format,
            )

            fh = RotatingFileHandler(
                full_log_path,
                maxBytes=int(max_bytes),
                backupCount=int(backup_count),
                encoding="utf-8",
            )
            fh.setLevel(level)
            fh.setFormatter(fmt)
            fh.addFilter(RepeatFilter())
            _logger.addHandler(fh)

            if console:
                ch = logging.StreamHandler()
                ch.setLevel(level)
                ch.setFormatter(fmt)
                ch.addFilter(RepeatFilter())
                _logger.addHandler(ch)

        self.path = full_log_path
        self._logger = _logger
        self._logger.debug("Logger '%s' initialized -> %s", logger_name, full_log_path)

    @classmethod
    def from_settings(cls, settings: LoggingSettings, level: Optional[int] = None) -> "Logger":
        return cls(
            log_file=settings.log_file,
            log_dir=settings.log_dir,
            level=settings.level_no if level is None else level,
            console=settings.console,
        )

    def get_logger(self) -> logging.Logger:
        return self._logger

    def close(self) -> None:
        for h in list(self._logger.handlers):
            h.close()
            self._logger.removeHandler(h)
