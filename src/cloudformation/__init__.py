"""
CloudFormation stack lifecycle management and completion tracking.
"""

from .client import QueryClient, StackOperationClient
from .diagnostics import StackDiagnostics
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
from .models import (
    SharedResources,
    StackEvent,
    StackIdentity,
    StackResource,
    StackState,
    StackSummary,
)
from .parameters import ParameterEncoder
from .stack_manager import StackManager
from .tracker import LifecycleTracker, TrackerState

__version__ = "1.0.0"

__all__ = [
    "CompositeFailure",
    "FailureAggregator",
    "LifecycleTracker",
    "ParameterEncoder",
    "ProviderError",
    "QueryClient",
    "SharedResources",
    "StackDiagnostics",
    "StackError",
    "StackEvent",
    "StackIdentity",
    "StackManager",
    "StackNotFoundError",
    "StackOperationClient",
    "StackResource",
    "StackState",
    "StackSummary",
    "StackTimeoutError",
    "StatusFallbackError",
    "TrackerCancelled",
    "TrackerState",
    "TransportError",
]
