"""
Fire-and-forget activity recording.

Checkout and status changes report what happened to an activity sink after
their transaction committed. Recording never blocks or fails the operation:
the sink runs as a background task and its failures are logged and dropped.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from shopcore.core.logging import get_logger
from shopcore.database.base import utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class ActivityRecord:
    """One audited action."""

    actor: str
    action: str
    description: str
    details: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)


ActivitySink = Callable[[ActivityRecord], Awaitable[None]]


async def log_activity_sink(record: ActivityRecord) -> None:
    """Default sink writing activities to the structured log."""
    logger.info(
        "Activity recorded",
        actor=record.actor,
        action=record.action,
        description=record.description,
        **record.details,
    )


class ActivityRecorder:
    """Schedules activity records on a sink without awaiting them."""

    def __init__(self, sink: Optional[ActivitySink] = None):
        self._sink = sink or log_activity_sink
        self._pending: set[asyncio.Task] = set()

    def record(
        self,
        actor: str,
        action: str,
        description: str,
        **details: Any,
    ) -> None:
        """
        Record an activity in the background.

        Args:
            actor: Actor reference (user:<id>, admin:<id>, ...)
            action: Short action name, e.g. order_created
            description: Human-readable description
            **details: Extra context passed to the sink
        """
        record = ActivityRecord(
            actor=actor,
            action=action,
            description=description,
            details=details,
        )
        task = asyncio.create_task(self._sink(record))
        self._pending.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(
                "Activity sink failed",
                error=str(error),
                error_type=type(error).__name__,
            )

    async def drain(self) -> None:
        """Wait until every scheduled record has been handled."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
