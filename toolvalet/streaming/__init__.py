"""toolvalet Streaming - progress events keyed by correlation id"""

from .models import (
    ActivityRecorder,
    ActivityStep,
    ProgressSink,
    QueueSink,
    ToolActivity,
    safe_emit,
)

__all__ = [
    "ActivityRecorder",
    "ActivityStep",
    "ProgressSink",
    "QueueSink",
    "ToolActivity",
    "safe_emit",
]
