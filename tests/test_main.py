"""Tests for the command-line entry point."""

import pytest

from matrix_board import main as main_module
from matrix_board.main import build_parser, config_from_args, main


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.test is False
    assert args.port is None
    assert args.framerate is None
    assert args.config is None
    assert args.mock is False


def test_parser_flags():
    args = build_parser().parse_args(["-t", "-p", "4000", "-f", "30", "--mock"])
    assert args.test is True
    assert args.port == 4000
    assert args.framerate == 30.0
    assert args.mock is True


def test_config_without_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = config_from_args(build_parser().parse_args(["-p", "4000", "-f", "0"]))

    assert cfg.server.port == 4000
    assert cfg.refresh.period == 0.0
    assert cfg.serial.port == "/dev/ttyACM0"


def test_config_file_in_working_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.toml").write_text("[server]\nport = 5000\n[refresh]\nframerate = 20\n")

    cfg = config_from_args(build_parser().parse_args(["-f", "45"]))

    assert cfg.server.port == 5000
    assert cfg.refresh.framerate == 45.0


def test_missing_config_file_exits_with_error(tmp_path):
    assert main(["-c", str(tmp_path / "missing.toml")]) == 2


def test_invalid_port_exits_with_error(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main(["-p", "70000"]) == 2


@pytest.mark.parametrize("flags, expected_test", [([], False), (["-t"], True)])
def test_main_runs_server(tmp_path, monkeypatch, flags, expected_test):
    monkeypatch.chdir(tmp_path)
    calls = []

    async def fake_run_server(config, test=False):
        calls.append((config, test))

    monkeypatch.setattr(main_module, "run_server", fake_run_server)

    assert main(["--mock", *flags]) == 0
    assert len(calls) == 1
    config, test = calls[0]
    assert config.serial.mock is True
    assert test is expected_test


def test_main_reports_server_failure(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    async def failing_run_server(config, test=False):
        raise RuntimeError("serial port vanished")

    monkeypatch.setattr(main_module, "run_server", failing_run_server)

    assert main(["--mock"]) == 1
