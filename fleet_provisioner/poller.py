"""Bounded wait for a freshly created resource to become usable."""

import enum
import logging
import time
from datetime import timedelta
from typing import Callable, Tuple, Type, TypeVar, Union

from .errors import StageTimeoutError, TerminalStateError, TransientCallError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PollStatus(enum.Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


def classify_by_state(pending: str, ready: str) -> Callable[[str], PollStatus]:
    """Build a classifier for resources exposing a single state string

    Anything other than the pending or ready state is a terminal failure.
    """
    def classify(state: str) -> PollStatus:
        if state == ready:
            return PollStatus.READY
        if state == pending:
            return PollStatus.PENDING
        return PollStatus.FAILED

    return classify


def _seconds(value: Union[timedelta, float]) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


class StagePoller:
    """Sleep-then-recheck loop shared by every stage that waits on AWS"""

    def __init__(
        self,
        tick: Union[timedelta, float],
        timeout: Union[timedelta, float],
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.tick = _seconds(tick)
        self.timeout = _seconds(timeout)
        self._sleep = sleep
        self._clock = clock

    def wait_until_ready(
        self,
        description: str,
        fetch_state: Callable[[], T],
        classify: Callable[[T], PollStatus],
        retry_on: Tuple[Type[Exception], ...] = (TransientCallError,),
    ) -> T:
        """Poll fetch_state until classify reports READY, then return the state

        Errors listed in retry_on are logged and retried on the normal tick.
        A FAILED state raises TerminalStateError right away, and running out
        of time raises StageTimeoutError.
        """
        deadline = self._clock() + self.timeout
        while self._clock() < deadline:
            try:
                state = fetch_state()
            except retry_on as e:
                logger.warning(f"cannot get the state of {description}: {e}")
                self._sleep(self.tick)
                continue

            status = classify(state)
            logger.debug(f"{description}: {status.value}")
            if status is PollStatus.READY:
                return state
            if status is PollStatus.FAILED:
                raise TerminalStateError(description, state)
            self._sleep(self.tick)

        raise StageTimeoutError(description, self.timeout)
