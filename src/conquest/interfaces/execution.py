"""Execution Scheduler Protocol Interface."""

from datetime import datetime
from typing import Any, Protocol


class IExecutionService(Protocol):
    """Read side of the execution scheduler used by the orchestrator."""

    def get_execution_dashboard(self, now: datetime | None = None) -> dict[str, Any]:
        """Milestone status counts, delays and on-track evaluation."""
        ...
