"""Route registration for the toolvalet API."""

from fastapi import FastAPI

from .oauth import router as oauth_router
from .tools import router as tools_router
from .workflows import router as workflows_router


def register_routes(app: FastAPI):
    app.include_router(tools_router)
    app.include_router(workflows_router)
    app.include_router(oauth_router)
