"""Status input report parsing."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntFlag

INPUT_REPORT_SIZE = 1


class StatusFlag(IntFlag):
    """Bit masks of the 1-byte status input report."""

    DOWN_LIMIT = 0x01
    UP_LIMIT = 0x02
    LEFT_LIMIT = 0x04
    RIGHT_LIMIT = 0x08
    FIRED = 0x10


@dataclass(frozen=True)
class StatusReport:
    """Decoded status report.

    The four limit flags are set while the turret rests against the
    matching mechanical stop. ``fired`` is set once the firing mechanism
    has completed a cycle.
    """

    up_limit: bool = False
    down_limit: bool = False
    left_limit: bool = False
    right_limit: bool = False
    fired: bool = False
    raw: int = 0

    def __repr__(self) -> str:
        return (
            f"StatusReport(raw=0x{self.raw:02X}, up={self.up_limit}, "
            f"down={self.down_limit}, left={self.left_limit}, "
            f"right={self.right_limit}, fired={self.fired})"
        )

    def limits_hit(self) -> list[str]:
        """Names of the limit switches currently closed."""
        names = []
        if self.up_limit:
            names.append("up")
        if self.down_limit:
            names.append("down")
        if self.left_limit:
            names.append("left")
        if self.right_limit:
            names.append("right")
        return names

    def to_dict(self) -> dict:
        return {
            "up_limit": self.up_limit,
            "down_limit": self.down_limit,
            "left_limit": self.left_limit,
            "right_limit": self.right_limit,
            "fired": self.fired,
            "raw_hex": f"{self.raw:02x}",
        }


def decode_status(data: int | bytes) -> StatusReport:
    """Decode a status byte into a StatusReport.

    Args:
        data: The status byte, or a raw input report whose first byte
              is the status byte.

    No plausibility check is made: opposing limits both set, for
    example, decode as-is.
    """
    if isinstance(data, (bytes, bytearray)):
        if not data:
            raise ValueError("Empty status report")
        value = data[0]
    else:
        value = data & 0xFF

    return StatusReport(
        up_limit=bool(value & StatusFlag.UP_LIMIT),
        down_limit=bool(value & StatusFlag.DOWN_LIMIT),
        left_limit=bool(value & StatusFlag.LEFT_LIMIT),
        right_limit=bool(value & StatusFlag.RIGHT_LIMIT),
        fired=bool(value & StatusFlag.FIRED),
        raw=value,
    )
