"""Workflow routes."""

from fastapi import APIRouter, Depends, HTTPException

from ...workflow.loader import UnknownWorkflowError
from ..app import require_app, verify_api_key
from ..models import WorkflowRunRequest

router = APIRouter()


@router.get("/api/workflows", dependencies=[Depends(verify_api_key)])
async def list_workflows():
    app = require_app()
    return app.list_workflows()


@router.post("/api/workflows/{name}", dependencies=[Depends(verify_api_key)])
async def run_workflow(name: str, req: WorkflowRunRequest):
    """Run a registered workflow and return its WorkflowResult."""
    app = require_app()
    if not req.user_id:
        raise HTTPException(400, "user_id is required")
    try:
        result = await app.run_workflow(name, req.args, req.user_id)
    except UnknownWorkflowError as e:
        raise HTTPException(404, str(e))
    return result.to_dict()
