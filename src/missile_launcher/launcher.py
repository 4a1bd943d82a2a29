"""Action sequencer: timed movement, confirmed firing and status queries.

Each action drives the transport through the command encoder and status
decoder and always ends with an explicit Stop when the device was set in
motion. Transport faults never escape as exceptions; every action returns
an :class:`ActionResult` naming the step that failed.

Firing is self-terminating on the device side but needs a Stop to leave
the firing mechanism idle::

    IDLE --send(FIRE)--> FIRING --poll--> CONFIRMING --fired--> STOPPING --send(STOP)--> DONE
                                    ^           |
                                    +-- !fired -+

Any failed write or read moves the sequence to FAILED.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol

from .protocol.commands import Command, Direction, encode, move_command
from .protocol.parser import INPUT_REPORT_SIZE, StatusReport, decode_status

logger = logging.getLogger(__name__)

MOVE_HOLD_TIME = 0.1  # seconds, default movement duration
FIRE_HOLD_TIME = 0.5  # seconds the Stop trails the fired flag
MAX_MOVE_DURATION = 10.0  # exclusive upper bound, seconds


class LauncherError(Enum):
    """Why an action failed."""

    DEVICE_NOT_FOUND = "device not found"
    WRITE_FAILURE = "output report write failed"
    READ_FAILURE = "input report read failed"
    INVALID_ARGUMENT = "invalid argument"
    TIMEOUT = "timed out waiting for fire confirmation"


class FireState(Enum):
    """States of the fire sequence."""

    IDLE = "idle"
    FIRING = "firing"
    CONFIRMING = "confirming"
    STOPPING = "stopping"
    DONE = "done"
    FAILED = "failed"


class Transport(Protocol):
    """The part of :class:`USBConnection` the sequencer relies on."""

    def write(self, data: bytes) -> int: ...

    def read(self, size: int = ...) -> bytes | None: ...


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one sequencer action.

    ``step`` names the action on success (``move``, ``fire`` or
    ``status``) and the failing step on failure (``move``, ``fire``,
    ``status`` or ``stop``).
    """

    ok: bool
    step: str
    error: LauncherError | None = None
    status: StatusReport | None = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, step: str, status: StatusReport | None = None) -> ActionResult:
        return cls(ok=True, step=step, status=status)

    @classmethod
    def failure(cls, error: LauncherError, step: str) -> ActionResult:
        return cls(ok=False, step=step, error=error)

    def to_dict(self) -> dict:
        result: dict = {"ok": self.ok, "step": self.step}
        if self.error is not None:
            result["error"] = self.error.value
        if self.status is not None:
            result["status"] = self.status.to_dict()
        return result


class Launcher:
    """Sequences launcher commands over an open transport.

    Args:
        transport: Anything with ``write(bytes) -> int`` and
            ``read(size) -> bytes | None``, normally a ``USBConnection``.
        sleep: Blocking sleep, injected so tests can run on simulated time.
            Defaults to ``time.sleep``.
        clock: Monotonic clock in seconds, used for ``fire_timeout``.
            Defaults to ``time.monotonic``.
        overshoot: Delay between seeing the fired flag and sending Stop.
        fire_timeout: Upper bound in seconds on fire confirmation polling.
            ``None`` polls until the device reports fired or a transfer fails.
        poll_interval: Delay between status polls while firing.
    """

    def __init__(
        self,
        transport: Transport,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], float] | None = None,
        overshoot: float = FIRE_HOLD_TIME,
        fire_timeout: float | None = None,
        poll_interval: float = 0.0,
    ) -> None:
        self._transport = transport
        self._sleep = sleep or time.sleep
        self._clock = clock or time.monotonic
        self._overshoot = overshoot
        self._fire_timeout = fire_timeout
        self._poll_interval = poll_interval
        self.fire_state = FireState.IDLE

    # ─── LOW-LEVEL TRANSFERS ─────────────────────────────────────────

    def _send(self, command: Command) -> bool:
        """Write one command report. Returns False on any transfer failure."""
        report = encode(command)
        try:
            written = self._transport.write(report)
        except (OSError, ValueError) as e:
            logger.warning("Output report write failed (%s): %s", command.name, e)
            return False

        if written is None or written < 0:
            logger.warning("Output report write failed (%s)", command.name)
            return False

        logger.debug("Sent %s: %s", command.name, report.hex(" "))
        return True

    def _get_status(self) -> tuple[StatusReport | None, LauncherError | None]:
        """Request and read one status report."""
        if not self._send(Command.GET_STATUS):
            return None, LauncherError.WRITE_FAILURE

        try:
            data = self._transport.read(INPUT_REPORT_SIZE)
        except (OSError, ValueError) as e:
            logger.warning("Failed to read input report: %s", e)
            return None, LauncherError.READ_FAILURE

        if not data:
            logger.warning("Failed to read input report")
            return None, LauncherError.READ_FAILURE

        status = decode_status(data)
        logger.debug("Read %r", status)
        return status, None

    # ─── ACTIONS ─────────────────────────────────────────────────────

    def move(self, direction: Direction, duration: float = MOVE_HOLD_TIME) -> ActionResult:
        """Move the turret in ``direction`` for ``duration`` seconds, then stop.

        If the Move command cannot be sent, no Stop is attempted. If the
        Stop cannot be sent the turret may keep moving; this is reported
        as a ``stop`` failure and not retried.
        """
        if not isinstance(direction, Direction):
            logger.error("Unrecognized movement: %r", direction)
            return ActionResult.failure(LauncherError.INVALID_ARGUMENT, "move")
        if not 0 <= duration < MAX_MOVE_DURATION:
            logger.error("Invalid movement duration: %ss", duration)
            return ActionResult.failure(LauncherError.INVALID_ARGUMENT, "move")

        if not self._send(move_command(direction)):
            logger.error("Failed to perform requested movement")
            return ActionResult.failure(LauncherError.WRITE_FAILURE, "move")

        self._sleep(duration)

        if not self._send(Command.STOP):
            logger.error(
                "Failed to stop movement; turret may still be moving %s",
                direction.value,
            )
            return ActionResult.failure(LauncherError.WRITE_FAILURE, "stop")

        logger.info("Moved %s for %.3fs", direction.value, duration)
        return ActionResult.success("move")

    def fire(self) -> ActionResult:
        """Fire one missile and wait for the device to confirm it.

        The status report is polled until its fired flag is set, then the
        Stop is delayed by the overshoot interval so the firing cycle can
        finish.
        """
        self.fire_state = FireState.IDLE
        status: StatusReport | None = None
        started = 0.0
        polls = 0

        while True:
            state = self.fire_state

            if state is FireState.IDLE:
                if not self._send(Command.FIRE):
                    return self._fire_failed(LauncherError.WRITE_FAILURE, "fire")
                started = self._clock()
                self._transition(FireState.FIRING)

            elif state in (FireState.FIRING, FireState.CONFIRMING):
                if (
                    self._fire_timeout is not None
                    and self._clock() - started >= self._fire_timeout
                ):
                    logger.error(
                        "No fire confirmation after %d polls (%.2fs)",
                        polls, self._fire_timeout,
                    )
                    # Leave the mechanism idle rather than cycling
                    self._send(Command.STOP)
                    return self._fire_failed(LauncherError.TIMEOUT, "status")

                status, error = self._get_status()
                if error is not None:
                    return self._fire_failed(error, "status")
                polls += 1

                if status.fired:
                    logger.debug("Fire confirmed after %d polls", polls)
                    self._transition(FireState.STOPPING)
                else:
                    self._transition(FireState.CONFIRMING)
                    if self._poll_interval > 0:
                        self._sleep(self._poll_interval)

            elif state is FireState.STOPPING:
                self._sleep(self._overshoot)
                if not self._send(Command.STOP):
                    return self._fire_failed(LauncherError.WRITE_FAILURE, "stop")
                self._transition(FireState.DONE)

            else:
                logger.info("Fired")
                return ActionResult.success("fire", status=status)

    def query_status(self) -> ActionResult:
        """Read the current limit switch and fire state."""
        status, error = self._get_status()
        if error is not None:
            logger.error("Failed to retrieve status information")
            return ActionResult.failure(error, "status")
        return ActionResult.success("status", status=status)

    def _transition(self, state: FireState) -> None:
        if state is not self.fire_state:
            logger.debug("Fire state %s -> %s", self.fire_state.value, state.value)
        self.fire_state = state

    def _fire_failed(self, error: LauncherError, step: str) -> ActionResult:
        logger.error("Failed to fire missile at step %s: %s", step, error.value)
        self._transition(FireState.FAILED)
        return ActionResult.failure(error, step)
