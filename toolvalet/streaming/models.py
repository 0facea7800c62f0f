"""
toolvalet Streaming Models - Progress events for tool activity

Every dispatch can report progress to a sink under the invocation's
correlation id, so the conversation UI can show "Creating Google Doc..."
next to the message that triggered it.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class ActivityStep(str, Enum):
    """Lifecycle of one tool or workflow activity"""
    STARTING = "starting"
    COMPLETED = "completed"
    CONNECTION_REQUIRED = "connection_required"
    ERROR = "error"


@dataclass
class ToolActivity:
    """
    One progress event.

    Attributes:
        correlation_id: Invocation (or workflow run) this event belongs to
        tool: Tool or workflow name
        step: Lifecycle step
        title: Short headline ("Fetching deal")
        description: Longer text for the UI
        data: Optional structured details (e.g. the connection ``ui`` block)
    """
    correlation_id: str
    tool: str
    step: ActivityStep
    title: str = ""
    description: str = ""
    data: Optional[Dict[str, Any]] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Wire form: {"toolActivity": {...}}"""
        activity: Dict[str, Any] = {
            "correlationId": self.correlation_id,
            "tool": self.tool,
            "step": self.step.value,
            "title": self.title,
            "description": self.description,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.data is not None:
            activity["data"] = self.data
        return {"toolActivity": activity}


@runtime_checkable
class ProgressSink(Protocol):
    """Receives progress events. Implementations must not block for long."""

    async def emit(self, activity: ToolActivity) -> None:
        ...


class ActivityRecorder:
    """Collects events in memory (polling UIs, tests)."""

    def __init__(self):
        self.events: List[ToolActivity] = []

    async def emit(self, activity: ToolActivity) -> None:
        self.events.append(activity)

    def for_correlation(self, correlation_id: str) -> List[ToolActivity]:
        return [e for e in self.events if e.correlation_id == correlation_id]

    def steps(self) -> List[ActivityStep]:
        return [e.step for e in self.events]


class QueueSink:
    """Pushes events onto an asyncio.Queue consumed by a streaming response."""

    def __init__(self, queue: Optional[asyncio.Queue] = None):
        self.queue: asyncio.Queue = queue or asyncio.Queue()

    async def emit(self, activity: ToolActivity) -> None:
        await self.queue.put(activity)


async def safe_emit(sink: Optional[ProgressSink], activity: ToolActivity) -> None:
    """Emit without letting a broken sink affect the tool outcome."""
    if sink is None:
        return
    try:
        await sink.emit(activity)
    except Exception as e:
        logger.warning(f"Progress sink failed for {activity.tool} ({activity.step.value}): {e}")
