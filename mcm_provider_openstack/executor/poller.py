"""Bounded status polling.

The poller is split in two: :func:`decide` is a pure function turning one
observation of a resource into a decision, and :class:`StatusPoller` drives it
at a fixed interval until success, failure, timeout or cancellation. The clock,
the sleep function and the cancellation event are injectable so waits can be
exercised without real time passing.
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, NamedTuple, Optional

from mcm_provider_openstack import MCM_OPENSTACK_POLL_INTERVAL
from mcm_provider_openstack.backend import logger
from mcm_provider_openstack.backend.exceptions import StatusError, StatusTimeoutError


class Observation(NamedTuple):
    """One poll of a resource.

    For a resource that no longer exists ``exists`` is ``False`` and
    ``status`` holds the status that stands for its absence.
    """

    status: str
    fault: Optional[object] = None
    exists: bool = True


class Action(Enum):
    """Outcome of evaluating one observation."""

    CONTINUE = "continue"
    SUCCEED = "succeed"
    FAIL = "fail"


@dataclass(frozen=True)
class Decision:
    """Action to take after an observation, with the failure reason if any."""

    action: Action
    reason: str = ""


def decide(
    observation: Observation, pending: frozenset[str], target: frozenset[str]
) -> Decision:
    """Evaluate one observation against the pending and target statuses.

    An empty pending set means any non-target status keeps the wait going.
    """
    if not observation.exists:
        if observation.status in target:
            return Decision(Action.SUCCEED)
        return Decision(
            Action.FAIL, f"disappeared while waiting for status {sorted(target)}"
        )

    if observation.status in target:
        return Decision(Action.SUCCEED)

    if not pending or observation.status in pending:
        return Decision(Action.CONTINUE)

    reason = f"reached unexpected status {observation.status!r}"
    if observation.fault:
        reason = f"{reason}, fault: {observation.fault}"
    return Decision(Action.FAIL, reason)


class StatusPoller:
    """Polls a resource until it converges to a target status."""

    def __init__(
        self,
        interval: float = MCM_OPENSTACK_POLL_INTERVAL,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], None]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        """Init the poller.

        Args:
            interval: Seconds between two polls.
            clock: Monotonic clock, ``time.monotonic`` when not given.
            sleep: Sleep function, ``time.sleep`` when not given. Ignored when a
                cancellation event is set up, the event is waited on instead.
            cancel_event: Event aborting every wait once set.
        """
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self.cancel_event = cancel_event

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return time.monotonic()

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def _pause(self, seconds: float) -> None:
        if self.cancel_event is not None:
            self.cancel_event.wait(seconds)
        elif self._sleep is not None:
            self._sleep(seconds)
        else:
            time.sleep(seconds)

    def wait(
        self,
        accessor: Callable[[], Observation],
        pending: frozenset[str],
        target: frozenset[str],
        timeout: float,
        resource: str = "resource",
    ) -> Observation:
        """Poll ``accessor`` until the resource reaches a target status.

        The first poll happens immediately. No poll is issued once the deadline
        has passed or the cancellation event is set. Errors raised by the
        accessor propagate unchanged.

        Returns:
            The observation that satisfied the target.

        Raises:
            StatusError: The resource reached a status outside pending and target.
            StatusTimeoutError: The deadline passed or the wait was cancelled.
        """
        deadline = self._now() + timeout
        last_status = ""

        while True:
            if self._cancelled():
                msg = (
                    f"waiting for {resource} to reach status {sorted(target)} was cancelled "
                    f"(last status {last_status!r})"
                )
                raise StatusTimeoutError(msg)

            observation = accessor()
            if observation.status != last_status:
                logger.debug(
                    "Waiting for %s, current status %s, target %s",
                    resource,
                    observation.status,
                    sorted(target),
                )
                last_status = observation.status

            decision = decide(observation, pending, target)
            if decision.action is Action.SUCCEED:
                return observation
            if decision.action is Action.FAIL:
                raise StatusError(
                    f"{resource} {decision.reason}", observation.status, observation.fault
                )

            now = self._now()
            if now < deadline:
                self._pause(min(self.interval, deadline - now))
            if self._cancelled():
                continue
            if self._now() >= deadline:
                msg = (
                    f"{resource} did not reach status {sorted(target)} within {timeout}s "
                    f"(last status {last_status!r})"
                )
                raise StatusTimeoutError(msg)
