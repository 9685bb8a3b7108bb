# matrix_board/config.py
from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from .validation import validate_port, validate_board_config

logger = logging.getLogger(__name__)


DEFAULT_PORT = 27072
DEFAULT_FRAMERATE = 60.0
DEFAULT_SERIAL_PORT = "/dev/ttyACM0"
DEFAULT_BAUDRATE = 1_000_000
DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT

    def __post_init__(self) -> None:
        validate_port(self.port, "server port")


@dataclass(frozen=True)
class RefreshConfig:
    # 0 means refresh as fast as possible
    framerate: float = DEFAULT_FRAMERATE

    def __post_init__(self) -> None:
        if self.framerate < 0:
            raise ValueError(f"framerate must be >= 0, got {self.framerate}")

    @property
    def period(self) -> float:
        """Seconds between refreshes; 0.0 when unpaced."""
        return 1.0 / self.framerate if self.framerate > 0 else 0.0


@dataclass(frozen=True)
class SerialConfig:
    port: str = DEFAULT_SERIAL_PORT
    baudrate: int = DEFAULT_BAUDRATE
    timeout: float = DEFAULT_TIMEOUT
    mock: bool = False

    def __post_init__(self) -> None:
        if self.baudrate <= 0:
            raise ValueError("Serial baudrate must be > 0")
        if self.timeout <= 0:
            raise ValueError("Serial timeout must be > 0")


@dataclass(frozen=True)
class StatusConfig:
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT + 1

    def __post_init__(self) -> None:
        validate_port(self.port, "status port")


@dataclass(frozen=True)
class BoardConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    refresh: RefreshConfig = field(default_factory=RefreshConfig)
    serial: SerialConfig = field(default_factory=SerialConfig)
    status: StatusConfig = field(default_factory=StatusConfig)

    def validate(self) -> None:
        validate_board_config(self)

    def with_overrides(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        framerate: Optional[float] = None,
        mock: Optional[bool] = None,
        status_port: Optional[int] = None,
    ) -> "BoardConfig":
        """Return a copy with command-line values applied on top."""
        server = self.server
        if host is not None or port is not None:
            server = ServerConfig(
                host=host if host is not None else server.host,
                port=port if port is not None else server.port,
            )
        refresh = self.refresh
        if framerate is not None:
            refresh = RefreshConfig(framerate=framerate)
        serial = self.serial
        if mock:
            serial = replace(serial, mock=True)
        status = self.status
        if status_port is not None:
            status = StatusConfig(enabled=True, host=status.host, port=status_port)

        cfg = BoardConfig(server=server, refresh=refresh, serial=serial, status=status)
        cfg.validate()
        return cfg


def load_from_toml(config_path: str | Path) -> BoardConfig:
    """
    Load a BoardConfig from a TOML file. Missing keys take their defaults.

    Expected TOML structure:

    [server]
    host = "127.0.0.1"
    port = 27072

    [refresh]
    framerate = 60      # 0 = as fast as possible

    [serial]
    port = "/dev/ttyACM0"
    baudrate = 1000000
    timeout = 10.0
    mock = false

    [status]
    enabled = false
    host = "127.0.0.1"
    port = 27073
    """
    p = Path(config_path)
    if not p.exists():
        raise FileNotFoundError(f"Configuration file not found: {p}")

    with p.open("rb") as f:
        data = tomllib.load(f)

    server = data.get("server") or {}
    refresh = data.get("refresh") or {}
    serial = data.get("serial") or {}
    status = data.get("status") or {}

    cfg = BoardConfig(
        server=ServerConfig(
            host=str(server.get("host", "127.0.0.1")),
            port=int(server.get("port", DEFAULT_PORT)),
        ),
        refresh=RefreshConfig(
            framerate=float(refresh.get("framerate", DEFAULT_FRAMERATE)),
        ),
        serial=SerialConfig(
            port=str(serial.get("port", DEFAULT_SERIAL_PORT)),
            baudrate=int(serial.get("baudrate", DEFAULT_BAUDRATE)),
            timeout=float(serial.get("timeout", DEFAULT_TIMEOUT)),
            mock=bool(serial.get("mock", False)),
        ),
        status=StatusConfig(
            enabled=bool(status.get("enabled", False)),
            host=str(status.get("host", "127.0.0.1")),
            port=int(status.get("port", DEFAULT_PORT + 1)),
        ),
    )
    cfg.validate()

    logger.info(
        "Loaded BoardConfig: listen=%s:%d, framerate=%s, serial=%s@%d (mock=%s)",
        cfg.server.host,
        cfg.server.port,
        cfg.refresh.framerate,
        cfg.serial.port,
        cfg.serial.baudrate,
        cfg.serial.mock,
    )
    return cfg


def default_config() -> BoardConfig:
    """Local defaults: port 27072, 60 fps, matrix module on /dev/ttyACM0."""
    cfg = BoardConfig()
    cfg.validate()
    return cfg
