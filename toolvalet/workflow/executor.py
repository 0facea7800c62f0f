"""
toolvalet Workflow Engine - Runs workflow steps through the Dispatcher

Steps run strictly in order, each awaited before the next:
1. Resolve the step's arguments against the workflow input and the
   output of earlier successful steps
2. Dispatch the tool call
3. Record a StepOutcome
4. On a failed critical step, stop; on a failed best-effort step, carry on

The run succeeds when no critical step failed. Nothing is retried and
nothing is rolled back.
"""

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..audit_logger import AuditLogger
from ..result import ConnectionRequired, ErrorKind, Failure, Success, ToolResult, error_text
from ..streaming.models import ProgressSink
from ..tools.dispatcher import Dispatcher
from ..tools.models import ToolInvocation
from .models import StepOutcome, WorkflowDefinition, WorkflowResult, WorkflowStepSpec
from .resolver import ArgumentResolver, ResolutionError

logger = logging.getLogger(__name__)


def _select(data: Any, path: Optional[str]) -> Any:
    """Dotted-path selection into a step's data; None when absent."""
    if not path:
        return data
    current = data
    for part in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(part)
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return None
        if current is None:
            return None
    return current


class WorkflowEngine:
    """
    Executes workflows one step at a time.

    Example:
        engine = WorkflowEngine(dispatcher)
        result = await engine.run_definition(DEAL_SUMMARY_WORKFLOW, "u1", {"deal_id": "d1"})
        if not result.success and result.connection_required:
            ...  # ask the user to connect result.connection_required.provider
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        resolver: Optional[ArgumentResolver] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.dispatcher = dispatcher
        self.resolver = resolver or ArgumentResolver()
        self.audit = audit or dispatcher.audit

    async def run_definition(
        self,
        definition: WorkflowDefinition,
        user_id: str,
        initial_args: Optional[Mapping[str, Any]] = None,
        progress: Optional[ProgressSink] = None,
    ) -> WorkflowResult:
        return await self.run(
            definition.steps,
            user_id,
            initial_args=initial_args,
            name=definition.name,
            output=definition.output,
            progress=progress,
        )

    async def run(
        self,
        steps: Sequence[WorkflowStepSpec],
        user_id: str,
        initial_args: Optional[Mapping[str, Any]] = None,
        name: str = "adhoc",
        output: Optional[str] = None,
        progress: Optional[ProgressSink] = None,
    ) -> WorkflowResult:
        """
        Run ``steps`` in order for ``user_id``.

        Args:
            steps: Ordered step specs
            user_id: Caller identity, passed to every tool
            initial_args: Values available as {{input.*}}
            name: Workflow name for logs and audit entries
            output: Step whose data becomes the result data
                (default: the last successful step)
            progress: Optional sink for per-step tool activity events

        Returns:
            WorkflowResult; never raises for anything a step does
        """
        if not user_id:
            raise ValueError("user_id is required")

        run_id = f"wfrun_{uuid.uuid4().hex}"
        inputs = dict(initial_args or {})
        started_at = datetime.now(timezone.utc)
        started = time.monotonic()

        outcomes: List[StepOutcome] = []
        exported: Dict[str, Any] = {}
        step_data: Dict[str, Any] = {}
        last_success: Optional[str] = None
        stopped_by: Optional[StepOutcome] = None

        logger.info(f"Workflow '{name}' ({run_id}) starting with {len(steps)} steps for user {user_id}")

        for step in steps:
            outcome = await self._run_step(step, user_id, inputs, exported, run_id, progress)
            outcomes.append(outcome)
            self.audit.log_workflow_step(
                workflow=name,
                run_id=run_id,
                step=step.name,
                user_id=user_id,
                success=outcome.success,
                critical=step.critical,
                duration_ms=outcome.execution_time_ms,
                error=outcome.error,
            )

            if outcome.success:
                data = outcome.result.data
                step_data[step.name] = data
                exported[step.name] = _select(data, step.output)
                last_success = step.name
                continue

            if step.critical:
                logger.warning(f"Workflow '{name}' stopped at critical step '{step.name}': {outcome.error}")
                stopped_by = outcome
                break

            logger.info(f"Workflow '{name}' best-effort step '{step.name}' failed, continuing: {outcome.error}")

        success = stopped_by is None
        result = WorkflowResult(
            workflow=name,
            run_id=run_id,
            user_id=user_id,
            success=success,
            steps=outcomes,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            execution_time_ms=int((time.monotonic() - started) * 1000),
        )

        if success:
            data_step = output or last_success
            result.data = step_data.get(data_step) if data_step else None
        else:
            result.error = f"Step '{stopped_by.name}' failed: {stopped_by.error}"
            if isinstance(stopped_by.result, ConnectionRequired):
                result.connection_required = stopped_by.result

        self.audit.log_workflow_result(
            workflow=name,
            run_id=run_id,
            user_id=user_id,
            success=success,
            steps_run=len(outcomes),
            duration_ms=result.execution_time_ms,
            error=result.error,
        )
        logger.info(
            f"Workflow '{name}' ({run_id}) {'succeeded' if success else 'failed'} "
            f"after {len(outcomes)} steps in {result.execution_time_ms}ms"
        )
        return result

    async def _run_step(
        self,
        step: WorkflowStepSpec,
        user_id: str,
        inputs: Dict[str, Any],
        exported: Dict[str, Any],
        run_id: str,
        progress: Optional[ProgressSink],
    ) -> StepOutcome:
        started_at = datetime.now(timezone.utc)
        started = time.monotonic()

        try:
            arguments = self.resolver.resolve(step.arguments, inputs=inputs, steps=exported)
        except ResolutionError as e:
            result: ToolResult = Failure(
                kind=ErrorKind.INVALID_ARGUMENTS,
                message=f"Step '{step.name}': {e}",
            )
        else:
            invocation = ToolInvocation(
                tool_name=step.tool,
                user_id=user_id,
                arguments=arguments,
                correlation_id=f"{run_id}:{step.name}",
            )
            result = await self.dispatcher.dispatch(invocation, progress=progress)

        return StepOutcome(
            name=step.name,
            success=isinstance(result, Success),
            execution_time_ms=int((time.monotonic() - started) * 1000),
            critical=step.critical,
            error=error_text(result),
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            result=result,
        )
