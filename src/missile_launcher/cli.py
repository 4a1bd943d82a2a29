"""Command-line entry point.

If no action is requested, fires one missile and exits.
"""

from __future__ import annotations

import argparse
import logging
import sys

from . import __version__
from .config import LauncherConfig
from .launcher import MAX_MOVE_DURATION, Launcher, LauncherError
from .protocol.commands import Direction
from .protocol.parser import StatusReport
from .transport.usb_connection import DeviceNotFoundError, USBConnection

logger = logging.getLogger(__name__)

PROGRAM_NAME = "missile-launcher"
MAX_MOVE_TIME_MS = int(MAX_MOVE_DURATION * 1000) - 1


def _duration_ms(value: str) -> int:
    """argparse type for ``--time``: whole milliseconds 0-9999."""
    try:
        duration = int(value, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid duration: {value!r}") from None
    if not 0 <= duration <= MAX_MOVE_TIME_MS:
        raise argparse.ArgumentTypeError(
            f"duration must be 0-{MAX_MOVE_TIME_MS} ms, got {duration}"
        )
    return duration


def _timeout_s(value: str) -> float:
    """argparse type for ``--fire-timeout``: positive seconds."""
    try:
        timeout = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid timeout: {value!r}") from None
    if not timeout > 0:
        raise argparse.ArgumentTypeError(f"timeout must be positive, got {value}")
    return timeout


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROGRAM_NAME,
        description=(
            "USB missile launcher application for Dream Cheeky's Rocket Baby "
            "device. If no options are provided, fires one missile and exits."
        ),
    )
    parser.add_argument(
        "-m", "--move",
        choices=[d.value for d in Direction],
        metavar="DIR",
        help="Move the turret in the requested direction. "
             "Must be one of up, down, left, or right",
    )
    parser.add_argument(
        "-t", "--time",
        type=_duration_ms,
        metavar="TIME",
        help="The duration for moving the requested direction, in milliseconds",
    )
    parser.add_argument(
        "-f", "--fire", action="store_true", help="Fire the turret",
    )
    parser.add_argument(
        "-p", "--status", action="store_true", help="Print out status information",
    )
    parser.add_argument(
        "--fire-timeout",
        type=_timeout_s,
        metavar="SECONDS",
        help="Give up if the launcher has not confirmed firing after this long "
             "(default: wait indefinitely)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log every report sent and read",
    )
    parser.add_argument(
        "-V", "--version", action="version", version=f"{PROGRAM_NAME} {__version__}",
    )
    return parser


def format_status(status: StatusReport) -> str:
    """Render a status report the way ``--status`` prints it."""
    rows = [
        ("Tilt up limit:", status.up_limit),
        ("Tilt down limit:", status.down_limit),
        ("Pan left limit:", status.left_limit),
        ("Pan right limit:", status.right_limit),
        ("Fire complete:", status.fired),
    ]
    return "\n".join(f"{label:<20}{str(value).lower()}" for label, value in rows)


def run(config: LauncherConfig, connection: USBConnection | None = None) -> int:
    """Open the device, perform the configured actions and return an exit code."""
    connection = connection or USBConnection()

    try:
        connection.open()
    except DeviceNotFoundError as e:
        logger.debug("%s", e)
        print(
            f"Failed to open requested device ({LauncherError.DEVICE_NOT_FOUND.value})",
            file=sys.stderr,
        )
        return 1

    try:
        launcher = Launcher(connection, fire_timeout=config.fire_timeout)

        if config.movement is not None:
            result = launcher.move(config.movement, config.duration)
            if not result:
                print(f"Failed to move turret ({result.error.value})", file=sys.stderr)
                return 1

        if config.fire:
            result = launcher.fire()
            if not result:
                print(f"Failed to fire missile ({result.error.value})", file=sys.stderr)
                return 1

        if config.status:
            result = launcher.query_status()
            if not result:
                print(
                    f"Failed to print status information ({result.error.value})",
                    file=sys.stderr,
                )
                return 1
            print(format_status(result.status))

        return 0
    finally:
        connection.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = LauncherConfig.from_args(args)
    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return run(config)


if __name__ == "__main__":
    sys.exit(main())
