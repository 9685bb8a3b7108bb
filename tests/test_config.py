"""Tests for configuration loading and cross-cutting validation."""

import pytest

from matrix_board.config import (
    BoardConfig,
    RefreshConfig,
    SerialConfig,
    ServerConfig,
    StatusConfig,
    default_config,
    load_from_toml,
)
from matrix_board.validation import ConfigValidationError


def write_config(tmp_path, content: str):
    path = tmp_path / "config.toml"
    path.write_text(content)
    return path


def test_defaults():
    """Defaults: port 27072, 60 fps, hardware on /dev/ttyACM0."""
    cfg = default_config()
    assert cfg.server.host == "127.0.0.1"
    assert cfg.server.port == 27072
    assert cfg.refresh.framerate == 60.0
    assert cfg.refresh.period == pytest.approx(1 / 60)
    assert cfg.serial.port == "/dev/ttyACM0"
    assert cfg.serial.baudrate == 1_000_000
    assert cfg.serial.timeout == 10.0
    assert cfg.serial.mock is False
    assert cfg.status.enabled is False


def test_load_from_toml(tmp_path):
    path = write_config(
        tmp_path,
        """
[server]
host = "0.0.0.0"
port = 30000

[refresh]
framerate = 0

[serial]
port = "/dev/ttyUSB3"
mock = true

[status]
enabled = true
port = 30001
""",
    )

    cfg = load_from_toml(path)

    assert cfg.server == ServerConfig(host="0.0.0.0", port=30000)
    assert cfg.refresh.period == 0.0
    assert cfg.serial.port == "/dev/ttyUSB3"
    assert cfg.serial.baudrate == 1_000_000
    assert cfg.serial.mock is True
    assert cfg.status == StatusConfig(enabled=True, host="127.0.0.1", port=30001)


def test_empty_toml_uses_defaults(tmp_path):
    assert load_from_toml(write_config(tmp_path, "")) == default_config()


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_from_toml(tmp_path / "missing.toml")


@pytest.mark.parametrize(
    "content",
    [
        "[server]\nport = 70000\n",
        "[refresh]\nframerate = -1\n",
        "[serial]\nbaudrate = 0\n",
        "[serial]\ntimeout = 0\n",
    ],
)
def test_invalid_values(tmp_path, content):
    with pytest.raises(ValueError):
        load_from_toml(write_config(tmp_path, content))


def test_status_and_server_cannot_share_socket(tmp_path):
    path = write_config(
        tmp_path,
        "[server]\nport = 30000\n[status]\nenabled = true\nport = 30000\n",
    )
    with pytest.raises(ConfigValidationError):
        load_from_toml(path)


def test_with_overrides():
    cfg = default_config().with_overrides(
        host="0.0.0.0", port=0, framerate=30, mock=True, status_port=8080
    )

    assert cfg.server == ServerConfig(host="0.0.0.0", port=0)
    assert cfg.refresh == RefreshConfig(framerate=30)
    assert cfg.serial.mock is True
    assert cfg.status.enabled is True
    assert cfg.status.port == 8080


def test_with_no_overrides_is_equal():
    cfg = default_config()
    assert cfg.with_overrides() == cfg
    # --mock not given never switches a mock config back to hardware
    mock_cfg = BoardConfig(serial=SerialConfig(mock=True))
    assert mock_cfg.with_overrides(mock=False).serial.mock is True


def test_override_conflict_rejected():
    with pytest.raises(ConfigValidationError):
        default_config().with_overrides(status_port=27072)
