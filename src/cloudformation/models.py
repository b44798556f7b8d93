"""
Data types for stacks, their events and resources.

The ``from_response`` constructors accept the dictionaries produced by
botocore's response parser for the matching CloudFormation actions.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .status import is_failed


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class StackIdentity:
    """Name and control-plane id of a stack."""

    name: str
    id: str


@dataclass(frozen=True)
class StackState:
    """Snapshot of one stack as returned by a single status query."""

    name: str
    found: bool = False
    id: Optional[str] = None
    status: str = ""
    status_reason: str = ""

    @classmethod
    def missing(cls, name: str) -> "StackState":
        return cls(name=name, found=False)

    @classmethod
    def from_response(cls, stack: Dict[str, Any]) -> "StackState":
        return cls(
            name=stack["StackName"],
            found=True,
            id=stack.get("StackId"),
            status=stack.get("StackStatus", ""),
            status_reason=stack.get("StackStatusReason", ""),
        )

    @property
    def identity(self) -> StackIdentity:
        return StackIdentity(name=self.name, id=self.id or "")


@dataclass(frozen=True)
class StackEvent:
    """A single entry from a stack's event history."""

    event_id: str
    logical_resource_id: str
    physical_resource_id: str
    resource_type: str
    resource_status: str
    resource_status_reason: str
    timestamp: datetime

    @classmethod
    def from_response(cls, event: Dict[str, Any]) -> "StackEvent":
        return cls(
            event_id=event.get("EventId", ""),
            logical_resource_id=event.get("LogicalResourceId", ""),
            physical_resource_id=event.get("PhysicalResourceId", ""),
            resource_type=event.get("ResourceType", ""),
            resource_status=event.get("ResourceStatus", ""),
            resource_status_reason=event.get("ResourceStatusReason", ""),
            timestamp=as_utc(event["Timestamp"]),
        )

    @property
    def failed(self) -> bool:
        return is_failed(self.resource_status)

    @property
    def message(self) -> str:
        """The event formatted as "STATUS: REASON"."""
        return f"{self.resource_status}: {self.resource_status_reason}"


@dataclass(frozen=True)
class StackSummary:
    """A stack as listed by ListStacks, including deleted stacks."""

    name: str
    id: str
    status: str
    status_reason: str = ""
    creation_time: Optional[datetime] = None
    deletion_time: Optional[datetime] = None

    @classmethod
    def from_response(cls, summary: Dict[str, Any]) -> "StackSummary":
        created = summary.get("CreationTime")
        deleted = summary.get("DeletionTime")
        return cls(
            name=summary["StackName"],
            id=summary.get("StackId", ""),
            status=summary.get("StackStatus", ""),
            status_reason=summary.get("StackStatusReason", ""),
            creation_time=as_utc(created) if created else None,
            deletion_time=as_utc(deleted) if deleted else None,
        )


@dataclass(frozen=True)
class StackResource:
    """A resource belonging to a stack."""

    logical_id: str
    physical_id: str
    resource_type: str
    status: str

    @classmethod
    def from_response(cls, resource: Dict[str, Any]) -> "StackResource":
        return cls(
            logical_id=resource.get("LogicalResourceId", ""),
            physical_id=resource.get("PhysicalResourceId", ""),
            resource_type=resource.get("ResourceType", ""),
            status=resource.get("ResourceStatus", ""),
        )


@dataclass(frozen=True)
class SharedResources:
    """Values a base stack exposes to the stacks built on top of it."""

    parameters: Dict[str, str] = field(default_factory=dict)
    # logical id -> physical id
    security_groups: Dict[str, str] = field(default_factory=dict)
    roles: Dict[str, str] = field(default_factory=dict)
    vpc_id: str = ""
