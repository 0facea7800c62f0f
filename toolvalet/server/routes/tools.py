"""Tool advertisement and dispatch routes."""

from fastapi import APIRouter, Depends, HTTPException

from ..app import require_app, verify_api_key
from ..models import ToolCallRequest

router = APIRouter()


@router.get("/api/tools", dependencies=[Depends(verify_api_key)])
async def list_tools():
    """Capability advertisement: [{name, description, parameters}]."""
    app = require_app()
    return app.list_tools()


@router.post("/api/tools/{name}", dependencies=[Depends(verify_api_key)])
async def call_tool(name: str, req: ToolCallRequest):
    """Dispatch one tool call. The body carries the outcome, including unknown tools."""
    app = require_app()
    if not req.user_id:
        raise HTTPException(400, "user_id is required")
    return await app.dispatch_wire(name, req.args, req.user_id, correlation_id=req.correlation_id)
