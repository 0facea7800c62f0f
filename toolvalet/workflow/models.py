"""
toolvalet Workflow Models - Data structures for multi-step tool runs

A workflow is data: an ordered list of WorkflowStepSpec, each naming a
registered tool and its arguments. Arguments may reference the workflow
input or the output of earlier steps with ``{{...}}`` expressions; see
resolver.py.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..connection import connection_ui
from ..result import ConnectionRequired, ToolResult


@dataclass(frozen=True)
class WorkflowStepSpec:
    """
    One step of a workflow.

    Attributes:
        name: Step name, unique within the workflow
        tool: Registered tool name
        arguments: Tool arguments; string values may hold {{...}} references
        critical: A failed critical step stops the workflow.
            A failed best-effort step is recorded and the run continues.
        output: Dotted path into the step's data selecting what later steps
            see as ``steps.<name>`` (default: all of it)
    """
    name: str
    tool: str
    arguments: Mapping[str, Any] = field(default_factory=dict)
    critical: bool = True
    output: Optional[str] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Workflow step name is required")
        if not self.tool:
            raise ValueError(f"Workflow step '{self.name}' must name a tool")
        if self.output is not None and not isinstance(self.output, str):
            raise TypeError(f"Workflow step '{self.name}' output must be a dotted path string")


@dataclass(frozen=True)
class WorkflowDefinition:
    """
    Named, reusable workflow.

    Attributes:
        name: Unique workflow name (e.g. "deal-summary")
        description: Human description
        steps: Steps in execution order
        output: Name of the step whose data is the workflow's data
            (default: the last successful step)
    """
    name: str
    steps: Tuple[WorkflowStepSpec, ...]
    description: str = ""
    output: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "steps", tuple(self.steps))
        if self.output is not None and not isinstance(self.output, str):
            raise TypeError(f"Workflow '{self.name}' output must be a step name")

    def step(self, name: str) -> Optional[WorkflowStepSpec]:
        for step in self.steps:
            if step.name == name:
                return step
        return None

    def validate(self) -> List[str]:
        """Structural problems; empty when the definition is sound."""
        errors = []
        if not self.name:
            errors.append("Workflow name is required")
        if not self.steps:
            errors.append(f"Workflow '{self.name}' has no steps")

        seen = set()
        for step in self.steps:
            if step.name in seen:
                errors.append(f"Workflow '{self.name}' declares step '{step.name}' twice")
            seen.add(step.name)

        if self.output is not None and self.output not in seen:
            errors.append(f"Workflow '{self.name}' output step '{self.output}' does not exist")
        return errors


@dataclass
class StepOutcome:
    """What happened to one executed step"""
    name: str
    success: bool
    execution_time_ms: int
    critical: bool = True
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    result: Optional[ToolResult] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "success": self.success,
            "executionTimeMs": self.execution_time_ms,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass
class WorkflowResult:
    """
    Result of one workflow run.

    ``steps`` holds the executed steps in execution order. When a critical
    step stops the run because of a ConnectionRequired, that result is kept
    in ``connection_required`` and rendered with the same ``ui`` block a
    single tool result uses.
    """
    workflow: str
    run_id: str
    user_id: str
    success: bool
    steps: List[StepOutcome] = field(default_factory=list)
    data: Any = None
    error: Optional[str] = None
    connection_required: Optional[ConnectionRequired] = None
    execution_time_ms: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def failed_steps(self) -> List[StepOutcome]:
        return [s for s in self.steps if not s.success]

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": self.success,
            "executionTimeMs": self.execution_time_ms,
            "steps": [s.to_dict() for s in self.steps],
        }
        if self.success:
            payload["data"] = self.data
        if self.error is not None:
            payload["error"] = self.error
        if self.connection_required is not None:
            payload["ui"] = connection_ui(self.connection_required)
        return payload
