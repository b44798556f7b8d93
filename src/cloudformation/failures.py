"""
Collect resource-level failures from a stack's event history.
"""

import logging
from datetime import datetime
from typing import List

from .client import StackOperationClient
from .models import StackEvent, as_utc

logger = logging.getLogger(__name__)


class FailureAggregator:
    """Extract failure events recorded after a watermark."""

    def __init__(self, client: StackOperationClient):
        self.client = client

    def failure_events(self, stack_id: str, since: datetime) -> List[StackEvent]:
        """Return failed events newer than ``since``, in retrieval order."""
        since = as_utc(since)
        return [
            event
            for event in self.client.query_events(stack_id)
            if event.timestamp > since and event.failed
        ]

    def list_failures(self, stack_id: str, since: datetime) -> List[str]:
        """
        List failures on a stack as "STATUS: REASON".

        Args:
            stack_id: Stack name or id
            since: Only events strictly after this time are included

        Returns:
            Failure messages, oldest first; empty when nothing failed
        """
        failures = [event.message for event in self.failure_events(stack_id, since)]
        logger.debug(f"{stack_id}: {len(failures)} failure(s) since {since.isoformat()}")
        return failures
