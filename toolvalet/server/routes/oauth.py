"""Provider connection routes: status, authorize URL, scope check, disconnect."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from ...auth.catalog import UnknownProviderError
from ...auth.identity import IdentityError
from ...connection import to_wire
from ...result import ConnectionRequired, Success
from ...tools.registry import ToolNotFoundError
from ..app import require_app, verify_api_key
from ..models import ConnectRequest, DisconnectRequest, ValidateScopesRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/api/oauth/connections", dependencies=[Depends(verify_api_key)])
async def list_connections(user_id: str):
    """Connection state of every known provider for a user."""
    app = require_app()
    if not user_id:
        raise HTTPException(400, "user_id is required")
    statuses = await app.connections(user_id)
    return {"connections": [s.to_dict() for s in statuses]}


@router.post("/api/oauth/connect", dependencies=[Depends(verify_api_key)])
async def connect(req: ConnectRequest):
    """Authorization URL that grants the requested (or default) scopes."""
    app = require_app()
    try:
        url = await app.connect(
            req.user_id,
            req.provider,
            scopes=req.scopes,
            redirect_url=req.redirect_url,
            state=req.state,
        )
    except UnknownProviderError as e:
        raise HTTPException(404, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))
    except IdentityError as e:
        logger.error(f"Authorization URL for {req.provider} failed: {e}")
        raise HTTPException(502, f"Identity service error: {e}")
    return {"url": url}


@router.post("/api/oauth/disconnect", dependencies=[Depends(verify_api_key)])
async def disconnect(req: DisconnectRequest):
    app = require_app()
    try:
        revoked = await app.disconnect(req.user_id, req.provider)
    except UnknownProviderError as e:
        raise HTTPException(404, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))
    except IdentityError as e:
        logger.error(f"Disconnect {req.provider} failed: {e}")
        raise HTTPException(502, f"Identity service error: {e}")
    return {"success": True, "disconnected": revoked}


@router.post("/api/oauth/validate-scopes", dependencies=[Depends(verify_api_key)])
async def validate_scopes(req: ValidateScopesRequest):
    """
    ``{"success": true}`` when the user already holds the needed scopes,
    otherwise the connection_required payload with status 403.
    """
    app = require_app()
    try:
        result = await app.check_scopes(req.user_id, req.provider, tool=req.tool, scopes=req.scopes)
    except (UnknownProviderError, ToolNotFoundError) as e:
        raise HTTPException(404, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))

    if isinstance(result, Success):
        return {"success": True, "scopes": result.data["scopes"]}
    if isinstance(result, ConnectionRequired):
        return JSONResponse(status_code=403, content=to_wire(result))
    logger.error(f"Scope check for {req.provider} failed: {result.message}")
    raise HTTPException(502, result.message)
