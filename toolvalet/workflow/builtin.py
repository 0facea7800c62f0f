"""
Workflows shipped with toolvalet.
"""

from .loader import WorkflowRegistry
from .models import WorkflowDefinition, WorkflowStepSpec

DEAL_SUMMARY_WORKFLOW = WorkflowDefinition(
    name="deal-summary",
    description="Fetch a CRM deal and its stakeholders, then write a summary to a new Google Doc",
    steps=(
        WorkflowStepSpec(
            name="fetch-deal",
            tool="crm_deals",
            arguments={"deal_id": "{{input.deal_id}}"},
            output="deal",
        ),
        WorkflowStepSpec(
            name="fetch-stakeholders",
            tool="crm_deal_stakeholders",
            arguments={"deal_id": "{{input.deal_id}}"},
            critical=False,
            output="stakeholders",
        ),
        WorkflowStepSpec(
            name="compose-summary",
            tool="compose_deal_summary",
            arguments={
                "deal": "{{steps.fetch-deal}}",
                "stakeholders": "{{steps.fetch-stakeholders?}}",
            },
        ),
        WorkflowStepSpec(
            name="create-document",
            tool="create_document",
            arguments={
                "title": "{{steps.compose-summary.title}}",
                "content": "{{steps.compose-summary.content}}",
            },
        ),
    ),
    output="create-document",
)

BUILTIN_WORKFLOWS = (DEAL_SUMMARY_WORKFLOW,)


def register_builtin_workflows(workflows: WorkflowRegistry) -> WorkflowRegistry:
    for definition in BUILTIN_WORKFLOWS:
        workflows.register(definition)
    return workflows
