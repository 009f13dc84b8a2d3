# serial_term/core/settings.py

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError
from .line_buffer import DEFAULT_LOG_CAPACITY
from .session import BAUD_RATES, DEFAULT_BAUD_RATE, WARNING_PREFIX

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


@dataclass
class TransportSettings:
    serial_port: Optional[str] = None
    baudrate: int = DEFAULT_BAUD_RATE
    read_chunk: int = 256

    def __post_init__(self) -> None:
        if self.baudrate not in BAUD_RATES:
            raise ConfigError(f"transport.baudrate must be one of {BAUD_RATES}, got {self.baudrate}")
        if self.read_chunk < 1:
            raise ConfigError("transport.read_chunk must be >= 1")


@dataclass
class SessionSettings:
    log_capacity: int = DEFAULT_LOG_CAPACITY
    warning_prefix: str = WARNING_PREFIX
    connect_timeout_s: Optional[float] = None

    def __post_init__(self) -> None:
        if self.log_capacity < 1:
            raise ConfigError("session.log_capacity must be >= 1")


@dataclass
class LoggingSettings:
    log_dir: str = "logs"
    log_file: str = "serial_term.log"
    level: str = "INFO"
    console: bool = False

    @property
    def level_no(self) -> int:
        value = logging.getLevelName(self.level.upper())
        if not isinstance(value, int):
            raise ConfigError(f"logging.level is not a logging level: {self.level}")
        return value


@dataclass
class TerminalSettings:
    transport: TransportSettings = field(default_factory=TransportSettings)
    session: SessionSettings = field(default_factory=SessionSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TerminalSettings":
        try:
            return cls(
                transport=TransportSettings(**(data.get("transport") or {})),
                session=SessionSettings(**(data.get("session") or {})),
                logging=LoggingSettings(**(data.get("logging") or {})),
            )
        except TypeError as e:
            raise ConfigError(f"unknown setting: {e}") from e

    @classmethod
    def load(cls, profile: str = "default", path: Optional[Path] = None) -> "TerminalSettings":
        cfg_path = path or CONFIG_DIR / f"terminal_profile_{profile}.yaml"
        if not cfg_path.exists():
            raise ConfigError(f"profile not found: {cfg_path}")

        data = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"{cfg_path}: top level must be a mapping")

        settings = cls.from_dict(data)
        settings.apply_env()
        return settings

    def apply_env(self, environ: Optional[Dict[str, str]] = None) -> None:
        """Apply SERIAL_TERM_PORT / SERIAL_TERM_BAUD overrides."""
        env = os.environ if environ is None else environ

        port = env.get("SERIAL_TERM_PORT")
        if port:
            self.transport.serial_port = port

        baud = env.get("SERIAL_TERM_BAUD")
        if baud:
            try:
                rate = int(baud)
            except ValueError as e:
                raise ConfigError(f"SERIAL_TERM_BAUD is not a number: {baud!r}") from e
            if rate not in BAUD_RATES:
                raise ConfigError(f"SERIAL_TERM_BAUD must be one of {BAUD_RATES}, got {rate}")
            self.transport.baudrate = rate
