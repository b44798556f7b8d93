"""
Shared fixtures: a scripted in-memory CloudFormation client and a fake clock.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

import pytest

from cloudformation.client import StackOperationClient
from cloudformation.errors import ProviderError
from cloudformation.models import StackEvent, StackState

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """A clock that only moves when something sleeps."""

    def __init__(self, start: datetime = T0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> datetime:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += timedelta(seconds=seconds)


def make_event(
    status: str,
    reason: str = "",
    timestamp: datetime = T0,
    logical_id: str = "Resource",
    event_id: str = "",
) -> StackEvent:
    return StackEvent(
        event_id=event_id or f"{logical_id}-{status}-{timestamp.isoformat()}",
        logical_resource_id=logical_id,
        physical_resource_id=f"{logical_id.lower()}-1",
        resource_type="AWS::S3::Bucket",
        resource_status=status,
        resource_status_reason=reason,
        timestamp=timestamp,
    )


class FakeClient(StackOperationClient):
    """
    Client returning one scripted result per status query.

    Each entry of ``statuses`` is a status string, ``None`` for a stack that
    is not visible, or an exception instance to raise. ``events_error``, when
    set, is raised by every event query.
    """

    def __init__(
        self,
        statuses: Sequence[Union[str, None, Exception]] = (),
        events: Sequence[StackEvent] = (),
        reason: str = "",
        events_error: Optional[Exception] = None,
    ):
        super().__init__()
        self.statuses = list(statuses)
        self.events = list(events)
        self.events_error = events_error
        self.reason = reason
        self.status_queries: List[str] = []
        self.event_queries: List[str] = []
        self.submitted: List[Dict[str, Any]] = []
        self.responses: Dict[str, Any] = {}

    def submit(self, action: str, params: Dict[str, str]) -> Dict[str, Any]:
        self.submitted.append({"action": action, "params": params})
        response = self.responses.get(action, {})
        if isinstance(response, Exception):
            raise response
        return response

    def query_status(self, name: str) -> StackState:
        self.status_queries.append(name)
        index = min(len(self.status_queries), len(self.statuses)) - 1
        result = self.statuses[index]
        if isinstance(result, Exception):
            raise result
        if result is None:
            return StackState.missing(name)
        return StackState(
            name=name,
            found=True,
            id=f"arn:aws:cloudformation:us-east-1:123456789012:stack/{name}/1",
            status=result,
            status_reason=self.reason,
        )

    def query_events(self, name: str) -> List[StackEvent]:
        self.event_queries.append(name)
        if self.events_error is not None:
            raise self.events_error
        return list(self.events)


def not_found(name: str) -> ProviderError:
    return ProviderError(
        "ValidationError", f"Stack with id {name} does not exist", status_code=400
    )


class ScriptedSubmitClient(StackOperationClient):
    """
    Client replaying scripted submit() responses per action.

    Status and event queries use the shared StackOperationClient code, so
    decoding of DescribeStacks results is exercised. The last response for an
    action repeats; exception instances are raised.
    """

    def __init__(self, responses: Dict[str, Sequence[Any]]):
        super().__init__()
        self.responses = {action: list(items) for action, items in responses.items()}
        self.calls: List[str] = []

    def submit(self, action: str, params: Dict[str, str]) -> Dict[str, Any]:
        self.calls.append(action)
        script = self.responses.get(action) or [{}]
        response = script[min(self.calls.count(action), len(script)) - 1]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_client_factory():
    def factory(
        statuses: Sequence[Union[str, None, Exception]] = (),
        events: Optional[Sequence[StackEvent]] = None,
        reason: str = "",
    ) -> FakeClient:
        return FakeClient(statuses, events or (), reason)

    return factory
