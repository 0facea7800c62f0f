"""Pydantic request models for the toolvalet API."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ToolCallRequest(BaseModel):
    user_id: str
    args: Dict[str, Any] = Field(default_factory=dict)
    correlation_id: Optional[str] = None


class WorkflowRunRequest(BaseModel):
    user_id: str
    args: Dict[str, Any] = Field(default_factory=dict)


class ConnectRequest(BaseModel):
    user_id: str
    provider: str
    scopes: Optional[List[str]] = None
    redirect_url: Optional[str] = None
    state: Optional[str] = None


class DisconnectRequest(BaseModel):
    user_id: str
    provider: str


class ValidateScopesRequest(BaseModel):
    user_id: str
    provider: str
    tool: Optional[str] = None
    scopes: Optional[List[str]] = None
