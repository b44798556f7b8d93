"""
Poll a stack until its current operation reaches a terminal status.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from .client import StackOperationClient
from .errors import (
    CompositeFailure,
    ProviderError,
    StackError,
    StackNotFoundError,
    StackTimeoutError,
    StatusFallbackError,
    TrackerCancelled,
    TransportError,
)
from .failures import FailureAggregator
from .models import StackState
from .status import StatusClass, classify, is_complete

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 5.0
DEFAULT_LOOKBACK = 2.0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TrackerState(Enum):
    """Where the polling loop ended up."""

    POLLING = "polling"
    SUCCESS = "success"
    FAILURE = "failure"
    TIMED_OUT = "timed_out"
    TRANSPORT_ERROR = "transport_error"


class LifecycleTracker:
    """
    Block until a stack operation succeeds, fails or times out.

    One tracker follows one stack at a time. Trackers share no state, so
    independent stacks can be followed from separate threads with separate
    instances.
    """

    def __init__(
        self,
        client: StackOperationClient,
        aggregator: Optional[FailureAggregator] = None,
        interval: float = DEFAULT_INTERVAL,
        lookback: float = DEFAULT_LOOKBACK,
        clock: Callable[[], datetime] = utcnow,
        sleep: Optional[Callable[[float], object]] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Initialize tracker.

        Args:
            client: Client used to query stack status and events
            aggregator: Failure aggregator (built from client if omitted)
            interval: Seconds between polls
            lookback: Seconds before the start of tracking to search for failures
            clock: Returns the current aware UTC time
            sleep: Sleeps between polls; waits on cancel_event by default
            cancel_event: Set to stop tracking at the next sleep
        """
        self.client = client
        self.aggregator = aggregator or FailureAggregator(client)
        self.interval = interval
        self.lookback = timedelta(seconds=lookback)
        self.clock = clock
        self.cancel_event = cancel_event or threading.Event()
        self._sleep = sleep or self.cancel_event.wait
        self.state = TrackerState.POLLING
        self.polls = 0

    def cancel(self) -> None:
        self.cancel_event.set()

    def wait(self, name: str, timeout: float) -> StackState:
        """
        Wait for a create or update to finish.

        Polls while the stack is CREATE_IN_PROGRESS or UPDATE_IN_PROGRESS and
        succeeds once it enters a successful _COMPLETE state. Transport errors
        are retried until the deadline; provider errors end the wait at once.

        Returns:
            The final stack state

        Raises:
            CompositeFailure: Failure events were found for the operation
            StatusFallbackError: The stack failed but no failure events were found
            ProviderError: The control plane rejected the status query
            StackTimeoutError: The deadline passed
            TrackerCancelled: cancel() was called
        """
        start = self.clock()
        deadline = start + timedelta(seconds=timeout)
        self.state = TrackerState.POLLING
        self.polls = 0

        while True:
            self.polls += 1
            try:
                stack = self.client.query_status(name)
            except ProviderError:
                # the call went through and the control plane refused it
                self.state = TrackerState.FAILURE
                raise
            except TransportError as e:
                logger.error(f"DescribeStacks {name}: {e}")
                self.state = TrackerState.TRANSPORT_ERROR
                stack = None
            else:
                self.state = TrackerState.POLLING

            if stack is not None and stack.found:
                logger.debug(f"{name}: {stack.status}")
                status_class = classify(stack.status)

                if status_class is StatusClass.SUCCESS:
                    self.state = TrackerState.SUCCESS
                    logger.info(f"Stack {name} reached {stack.status}")
                    return stack

                if status_class is StatusClass.OTHER:
                    self.state = TrackerState.FAILURE
                    raise self._failure(name, stack, start)

            self._pause(name, deadline, timeout)

    def wait_for_complete(self, name: str, timeout: float) -> StackState:
        """
        Wait for any _COMPLETE status, whether or not the operation succeeded.

        Every _COMPLETE status is assumed final. Any query error ends the
        wait immediately.

        Raises:
            StackNotFoundError: The stack is not visible or no longer exists
            StackTimeoutError: The deadline passed
        """
        deadline = self.clock() + timedelta(seconds=timeout)
        self.state = TrackerState.POLLING
        self.polls = 0

        while True:
            self.polls += 1
            try:
                stack = self.client.query_status(name)
            except TransportError:
                self.state = TrackerState.TRANSPORT_ERROR
                raise
            except ProviderError as e:
                self.state = TrackerState.FAILURE
                if e.is_not_found:
                    raise StackNotFoundError(name) from e
                raise
            except StackError:
                self.state = TrackerState.FAILURE
                raise

            if not stack.found:
                self.state = TrackerState.FAILURE
                raise StackNotFoundError(name)

            logger.debug(f"{name}: {stack.status}")
            if is_complete(stack.status):
                self.state = TrackerState.SUCCESS
                logger.info(f"Stack {name} finished with {stack.status}")
                return stack

            self._pause(name, deadline, timeout)

    def _failure(self, name: str, stack: StackState, start: datetime) -> StackError:
        # Look slightly before the wait began: a quick failure is more likely
        # than an event left over from a previous operation.
        try:
            failures = self.aggregator.list_failures(name, start - self.lookback)
        except StackError as e:
            logger.warning(f"Could not list failures for {name}: {e}")
            failures = []

        if failures:
            return CompositeFailure(failures)
        return StatusFallbackError(stack.status, stack.status_reason)

    def _pause(self, name: str, deadline: datetime, timeout: float) -> None:
        if self.clock() > deadline:
            self.state = TrackerState.TIMED_OUT
            raise StackTimeoutError(name, timeout)
        if self.cancel_event.is_set():
            raise TrackerCancelled(name)
        self._sleep(self.interval)
