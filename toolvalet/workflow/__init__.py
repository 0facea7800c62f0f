"""
toolvalet Workflow - Ordered, data-declared tool compositions

Example:
    from toolvalet.workflow import WorkflowEngine, WorkflowStepSpec

    engine = WorkflowEngine(dispatcher)
    result = await engine.run(
        [
            WorkflowStepSpec("fetch-deal", "crm_deals", {"deal_id": "{{input.deal_id}}"}, output="deal"),
            WorkflowStepSpec("notes", "crm_contacts", {"search": "{{steps.fetch-deal.name}}"}, critical=False),
        ],
        user_id="u1",
        initial_args={"deal_id": "d1"},
    )
"""

from .builtin import BUILTIN_WORKFLOWS, DEAL_SUMMARY_WORKFLOW, register_builtin_workflows
from .executor import WorkflowEngine
from .loader import (
    UnknownWorkflowError,
    WorkflowLoadError,
    WorkflowLoader,
    WorkflowRegistry,
    WorkflowValidationError,
)
from .models import StepOutcome, WorkflowDefinition, WorkflowResult, WorkflowStepSpec
from .resolver import ArgumentResolver, ResolutionError

__all__ = [
    # Models
    "WorkflowStepSpec",
    "WorkflowDefinition",
    "StepOutcome",
    "WorkflowResult",
    # Execution
    "WorkflowEngine",
    "ArgumentResolver",
    "ResolutionError",
    # Loading
    "WorkflowLoader",
    "WorkflowRegistry",
    "WorkflowLoadError",
    "WorkflowValidationError",
    "UnknownWorkflowError",
    # Built-in
    "DEAL_SUMMARY_WORKFLOW",
    "BUILTIN_WORKFLOWS",
    "register_builtin_workflows",
]
