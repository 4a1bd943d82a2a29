"""Protocol layer: command encoding and status report decoding."""

from .commands import Command, Direction, encode, move_command
from .parser import StatusFlag, StatusReport, decode_status
