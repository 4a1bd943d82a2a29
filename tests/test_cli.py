"""Tests for argument handling, configuration and action dispatch."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from missile_launcher.cli import build_parser, format_status, main, run
from missile_launcher.config import LauncherConfig
from missile_launcher.launcher import MOVE_HOLD_TIME
from missile_launcher.protocol.commands import Command, Direction
from missile_launcher.protocol.parser import decode_status
from missile_launcher.transport.usb_connection import DeviceNotFoundError


def _config(argv: list[str]) -> LauncherConfig:
    return LauncherConfig.from_args(build_parser().parse_args(argv))


def _connection(status: bytes = b"\x10", write_result: int = 2) -> MagicMock:
    conn = MagicMock()
    conn.write.return_value = write_result
    conn.read.return_value = status
    return conn


def _sent(conn: MagicMock) -> list[int]:
    return [c.args[0][1] for c in conn.write.call_args_list]


# ─── CONFIG ───────────────────────────────────────────────────────────

def test_no_flags_means_fire():
    config = _config([])
    assert config.fire is True
    assert config.movement is None
    assert config.status is False


def test_status_only_does_not_fire():
    config = _config(["--status"])
    assert config.status is True
    assert config.fire is False


def test_move_with_time():
    config = _config(["--move", "left", "--time", "250"])
    assert config.movement is Direction.LEFT
    assert config.duration == pytest.approx(0.25)
    assert config.fire is False


def test_move_default_time():
    assert _config(["-m", "up"]).duration == MOVE_HOLD_TIME


def test_config_is_immutable():
    config = _config([])
    with pytest.raises(AttributeError):
        config.fire = False


@pytest.mark.parametrize("value", ["10000", "-1", "abc", ""])
def test_invalid_time_is_rejected(value):
    with pytest.raises(SystemExit) as exc:
        build_parser().parse_args(["--time", value])
    assert exc.value.code == 2


def test_invalid_direction_is_rejected():
    with pytest.raises(SystemExit) as exc:
        build_parser().parse_args(["--move", "sideways"])
    assert exc.value.code == 2


def test_max_time_accepted():
    assert _config(["-m", "down", "-t", "9999"]).duration == pytest.approx(9.999)


# ─── DISPATCH ─────────────────────────────────────────────────────────

@patch("missile_launcher.launcher.time.sleep")
def test_run_moves_fires_and_reports_in_order(mock_sleep, capsys):
    conn = _connection(status=b"\x10")
    config = LauncherConfig(
        movement=Direction.RIGHT, duration=0.3, fire=True, status=True,
    )

    assert run(config, conn) == 0
    assert _sent(conn) == [
        Command.MOVE_RIGHT, Command.STOP,
        Command.FIRE, Command.GET_STATUS, Command.STOP,
        Command.GET_STATUS,
    ]
    conn.open.assert_called_once()
    conn.close.assert_called_once()
    assert "Fire complete:      true" in capsys.readouterr().out


@patch("missile_launcher.launcher.time.sleep")
def test_run_stops_after_failed_move(mock_sleep, capsys):
    conn = _connection(write_result=-1)
    config = LauncherConfig(movement=Direction.UP, fire=True, status=True)

    assert run(config, conn) == 1
    assert _sent(conn) == [Command.MOVE_UP]
    conn.close.assert_called_once()
    assert "Failed to move turret" in capsys.readouterr().err


@patch("missile_launcher.launcher.time.sleep")
def test_run_skips_status_after_failed_fire(mock_sleep, capsys):
    conn = _connection()
    conn.read.return_value = None
    config = LauncherConfig(fire=True, status=True)

    assert run(config, conn) == 1
    assert _sent(conn) == [Command.FIRE, Command.GET_STATUS]
    conn.close.assert_called_once()
    assert "Failed to fire missile" in capsys.readouterr().err


def test_run_status_read_failure(capsys):
    conn = _connection()
    conn.read.return_value = None

    assert run(LauncherConfig(status=True), conn) == 1
    conn.close.assert_called_once()
    assert "Failed to print status information" in capsys.readouterr().err


def test_run_device_not_found(capsys):
    conn = MagicMock()
    conn.open.side_effect = DeviceNotFoundError("no device")

    assert run(LauncherConfig(fire=True), conn) == 1
    conn.write.assert_not_called()
    assert "Failed to open requested device" in capsys.readouterr().err


def test_run_closes_device_on_unexpected_error():
    conn = _connection()
    conn.write.side_effect = RuntimeError("boom")

    with pytest.raises(RuntimeError):
        run(LauncherConfig(status=True), conn)
    conn.close.assert_called_once()


@patch("missile_launcher.cli.run", return_value=0)
def test_main_builds_config(mock_run):
    assert main(["--status", "--verbose"]) == 0
    config = mock_run.call_args.args[0]
    assert config == LauncherConfig(status=True, verbose=True)


# ─── OUTPUT ───────────────────────────────────────────────────────────

def test_format_status():
    text = format_status(decode_status(0x05))
    assert text.splitlines() == [
        "Tilt up limit:      false",
        "Tilt down limit:    true",
        "Pan left limit:     true",
        "Pan right limit:    false",
        "Fire complete:      false",
    ]


# ─── FIRE TIMEOUT ─────────────────────────────────────────────────────

def test_fire_timeout_defaults_to_unbounded():
    assert _config(["--fire"]).fire_timeout is None


def test_fire_timeout_option():
    assert _config(["--fire", "--fire-timeout", "2.5"]).fire_timeout == 2.5


@pytest.mark.parametrize("value", ["0", "-1", "soon"])
def test_invalid_fire_timeout_is_rejected(value):
    with pytest.raises(SystemExit) as exc:
        build_parser().parse_args(["--fire-timeout", value])
    assert exc.value.code == 2


@patch("missile_launcher.launcher.time")
def test_run_fire_timeout_stops_launcher(mock_time, capsys):
    mock_time.monotonic.side_effect = [0.0, 0.5, 2.0]
    conn = _connection(status=b"\x00")

    assert run(LauncherConfig(fire=True, fire_timeout=1.0), conn) == 1
    assert _sent(conn) == [Command.FIRE, Command.GET_STATUS, Command.STOP]
    conn.close.assert_called_once()
    assert "timed out" in capsys.readouterr().err
