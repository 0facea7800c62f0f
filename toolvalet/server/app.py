"""FastAPI app, the shared ToolValet instance and request guards."""

import hmac
import logging
import os
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import APIKeyHeader

from ..app import ToolValet
from ..config import ConfigError

logger = logging.getLogger(__name__)

_app: Optional[ToolValet] = None

DEFAULT_ORIGINS = "http://localhost:3000,http://localhost:5173"


def require_app() -> ToolValet:
    """Return the shared ToolValet, building it on first use. 503 when config is broken."""
    global _app
    if _app is None:
        try:
            _app = ToolValet()
        except ConfigError as e:
            logger.error(f"Failed to load config: {e}")
            raise HTTPException(503, "Not configured. Check TOOLVALET_CONFIG.")
    return _app


def set_app(new_app: Optional[ToolValet]):
    global _app
    _app = new_app


# ── Optional API key ──

_API_KEY = os.getenv("TOOLVALET_API_KEY")
_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def _key_matches(candidate: Optional[str]) -> bool:
    return bool(candidate) and hmac.compare_digest(candidate, _API_KEY)


async def verify_api_key(
    request: Request,
    header_key: Optional[str] = Security(_api_key_header),
):
    """Accept X-API-Key or Authorization: Bearer. Open when TOOLVALET_API_KEY is unset."""
    if _API_KEY is None:
        return None

    bearer = request.headers.get("authorization", "")
    bearer_key = bearer[len("Bearer "):] if bearer.startswith("Bearer ") else None

    for candidate in (header_key, bearer_key):
        if _key_matches(candidate):
            return candidate
    raise HTTPException(401, "Invalid or missing API key")


def _create_api() -> FastAPI:
    _api = FastAPI(title="toolvalet", version="0.1.0")

    origins = os.getenv("TOOLVALET_ALLOWED_ORIGINS", DEFAULT_ORIGINS)
    _api.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in origins.split(",") if o.strip()],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if _API_KEY is None:
        logger.warning("TOOLVALET_API_KEY is not set; API endpoints are unauthenticated")

    from .routes import register_routes
    register_routes(_api)
    return _api


api = _create_api()
