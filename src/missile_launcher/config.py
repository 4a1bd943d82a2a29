"""Invocation settings built once from the command line."""

from __future__ import annotations

import argparse
from dataclasses import dataclass

from .launcher import MOVE_HOLD_TIME
from .protocol.commands import Direction


@dataclass(frozen=True)
class LauncherConfig:
    """What a single invocation should do.

    Actions run in a fixed order: move, then fire, then status.
    """

    movement: Direction | None = None
    duration: float = MOVE_HOLD_TIME
    fire: bool = False
    status: bool = False
    fire_timeout: float | None = None
    verbose: bool = False

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> LauncherConfig:
        movement = Direction(args.move) if args.move else None
        fire = args.fire
        # No action requested: fire one missile
        if movement is None and not fire and not args.status:
            fire = True
        duration = MOVE_HOLD_TIME if args.time is None else args.time / 1000
        return cls(
            movement=movement,
            duration=duration,
            fire=fire,
            status=args.status,
            fire_timeout=args.fire_timeout,
            verbose=args.verbose,
        )
