"""Command byte constants and the output report encoder.

Every command is a single byte sent in a 2-byte HID output report::

    +---------------+---------+
    | Report number | Command |
    |    1 byte     | 1 byte  |
    +---------------+---------+

The launcher uses unnumbered reports, so the report number is always 0.
"""

from __future__ import annotations

from enum import Enum, IntEnum

REPORT_NUMBER = 0x00
OUTPUT_REPORT_SIZE = 2


class Command(IntEnum):
    """Output report command values."""

    MOVE_DOWN = 0x01
    MOVE_UP = 0x02
    MOVE_LEFT = 0x04
    MOVE_RIGHT = 0x08
    FIRE = 0x10
    STOP = 0x20
    GET_STATUS = 0x40


class Direction(Enum):
    """Turret movement directions."""

    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


# Mapping from movement direction to the command that starts it
DIRECTION_COMMAND_MAP: dict[Direction, Command] = {
    Direction.UP: Command.MOVE_UP,
    Direction.DOWN: Command.MOVE_DOWN,
    Direction.LEFT: Command.MOVE_LEFT,
    Direction.RIGHT: Command.MOVE_RIGHT,
}


def move_command(direction: Direction) -> Command:
    """Return the Move command for a direction."""
    return DIRECTION_COMMAND_MAP[direction]


def encode(command: Command) -> bytes:
    """Build the 2-byte output report for a command.

    Args:
        command: One of the ``Command`` members.

    Returns:
        ``bytes([REPORT_NUMBER, command])`` ready for a HID write.
    """
    if not isinstance(command, Command):
        raise ValueError(f"Not a launcher command: {command!r}")
    return bytes([REPORT_NUMBER, command.value])
