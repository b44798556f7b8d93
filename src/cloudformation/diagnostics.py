"""
CloudFormation stack diagnostics and troubleshooting.
"""

from datetime import datetime, timezone
from typing import List

from .errors import StackError
from .models import StackEvent
from .stack_manager import StackManager

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class StackDiagnostics:
    """Diagnose CloudFormation stack issues."""

    def __init__(self, stack_manager: StackManager):
        """Initialize diagnostics with a stack manager."""
        self.stack_manager = stack_manager
        self.client = stack_manager.client

    def generate_report(self, stack_name: str, limit: int = 10) -> str:
        """Generate a diagnostic report for a stack."""
        report = []
        report.append("🔍 CloudFormation Stack Diagnostic Report")
        report.append(f"Stack: {stack_name}")
        report.append(f"Time: {datetime.now(timezone.utc).isoformat()}")
        report.append("=" * 80)

        state = self.stack_manager.status(stack_name)
        if not state.found:
            report.append("\n❌ Stack does not exist")
            return "\n".join(report)

        report.append(f"\n📊 Stack Status: {state.status}")
        if state.id:
            report.append(f"  Stack Id: {state.id}")
        if state.status_reason:
            report.append(f"  Status Reason: {state.status_reason}")

        try:
            failures = self.stack_manager.aggregator.list_failures(stack_name, EPOCH)
        except StackError as e:
            report.append(f"\n⚠️  Error getting failures: {e}")
            failures = []

        if failures:
            report.append(f"\n❌ Failures ({len(failures)})")
            for failure in failures:
                report.append(f"  - {failure}")

        report.append(f"\n📅 Recent Events (Last {limit}):")
        try:
            events = self.get_recent_events(stack_name, limit=limit)
        except StackError as e:
            report.append(f"  ⚠️  Error getting events: {e}")
            events = []
        for event in events:
            status_emoji = self._get_status_emoji(event.resource_status)
            report.append(
                f"  {status_emoji} {event.timestamp.strftime('%H:%M:%S')} - "
                f"{event.logical_resource_id} ({event.resource_status})"
            )
            if event.resource_status_reason:
                report.append(f"    → {event.resource_status_reason}")

        report.extend(self._get_common_solutions(state.status))

        return "\n".join(report)

    def get_recent_events(self, stack_name: str, limit: int = 20) -> List[StackEvent]:
        """Get the most recent stack events, newest first."""
        events = self.client.query_events(stack_name)
        return list(reversed(events))[:limit]

    def _get_status_emoji(self, status: str) -> str:
        """Get emoji for resource status."""
        if "COMPLETE" in status and "ROLLBACK" not in status:
            return "✅"
        elif "FAILED" in status:
            return "❌"
        elif "IN_PROGRESS" in status:
            return "🔄"
        elif "ROLLBACK" in status:
            return "↩️"
        else:
            return "•"

    def _get_common_solutions(self, status: str) -> List[str]:
        """Get common solutions based on stack status."""
        solutions = ["\n🛠️  Common Solutions:"]

        if status == "ROLLBACK_COMPLETE":
            solutions.extend(
                [
                    "  1. The stack failed during creation and rolled back",
                    "  2. Review the failures above",
                    "  3. Delete with: stackctl stack delete --stack-name <name>",
                ]
            )

        elif status == "DELETE_FAILED":
            solutions.extend(
                [
                    "  1. Resources are preventing deletion",
                    "  2. Common causes: non-empty S3 buckets, ENIs from Lambda",
                    "  3. Clean up the resources and delete again",
                ]
            )

        elif status == "UPDATE_ROLLBACK_COMPLETE":
            solutions.extend(
                [
                    "  1. The last update failed and was rolled back",
                    "  2. Review the failures above",
                    "  3. Fix the issues and try updating again",
                ]
            )

        elif "IN_PROGRESS" in status:
            solutions.extend(
                [
                    "  1. Operation is still in progress",
                    "  2. Wait with: stackctl stack wait --stack-name <name>",
                ]
            )

        else:
            solutions.append("  None needed")

        return solutions
