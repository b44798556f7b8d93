"""
Stack status vocabulary and classification.
"""

from enum import Enum

IN_PROGRESS_STATUSES = frozenset({"CREATE_IN_PROGRESS", "UPDATE_IN_PROGRESS"})

SUCCESS_STATUSES = frozenset(
    {
        "CREATE_COMPLETE",
        "UPDATE_COMPLETE",
        "UPDATE_COMPLETE_CLEANUP_IN_PROGRESS",
    }
)

COMPLETE_SUFFIX = "_COMPLETE"
FAILED_SUFFIX = "_FAILED"


class StatusClass(Enum):
    """How the tracker treats a stack status."""

    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    OTHER = "other"


def classify(status: str) -> StatusClass:
    """Classify a stack status for the polling loop.

    Only the known in-progress and successful statuses are recognised;
    rollback, failure and any unknown statuses fall into ``OTHER``.
    """
    if status in IN_PROGRESS_STATUSES:
        return StatusClass.IN_PROGRESS
    if status in SUCCESS_STATUSES:
        return StatusClass.SUCCESS
    return StatusClass.OTHER


def is_complete(status: str) -> bool:
    """True for any status ending in _COMPLETE, including rollbacks."""
    return status.endswith(COMPLETE_SUFFIX)


def is_failed(status: str) -> bool:
    return status.endswith(FAILED_SUFFIX)
