"""
Error types raised while submitting and tracking CloudFormation stack operations.
"""

from typing import Iterable, Optional, Tuple


class StackError(Exception):
    """Base class for all stack lifecycle errors."""


class TransportError(StackError):
    """The remote call itself failed (network, unreadable response)."""


class ProviderError(StackError):
    """The control plane received the request and explicitly rejected it."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: Optional[int] = None,
        action: Optional[str] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.action = action
        super().__init__(f"{code}: {message}" if code else message)

    @property
    def is_not_found(self) -> bool:
        """True when the provider reports that the stack does not exist."""
        return "does not exist" in self.message


class StackTimeoutError(StackError):
    """The stack did not reach a terminal status before the deadline."""

    def __init__(self, name: str, timeout: float):
        self.name = name
        self.timeout = timeout
        super().__init__(f"timeout waiting for stack {name} after {timeout:g}s")


class StackNotFoundError(StackError):
    """The stack is not visible to the control plane."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"could not find stack: {name}")


class TrackerCancelled(StackError):
    """Tracking was cancelled before the stack reached a terminal status."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"tracking cancelled for stack {name}")


class CompositeFailure(StackError):
    """
    One or more resource-level failures gathered from a stack's events.

    ``failures`` holds every "STATUS: REASON" line in retrieval order, which
    is oldest first. ``str()`` yields the newest (last) entry so that the
    error reads like a single message in simple contexts.
    """

    def __init__(self, failures: Iterable[str]):
        self._failures: Tuple[str, ...] = tuple(failures)
        if not self._failures:
            raise ValueError("CompositeFailure requires at least one failure")
        super().__init__(self._failures[-1])

    @property
    def failures(self) -> Tuple[str, ...]:
        return self._failures

    @property
    def oldest(self) -> str:
        return self._failures[0]

    @property
    def newest(self) -> str:
        return self._failures[-1]

    def __len__(self) -> int:
        return len(self._failures)

    def __str__(self) -> str:
        return self.newest


class StatusFallbackError(StackError):
    """A failure status was observed but no failure events could be found."""

    def __init__(self, status: str, reason: str = ""):
        self.status = status
        self.reason = reason
        super().__init__(f"{status}: {reason}")
