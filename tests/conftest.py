"""Shared fixtures: in-memory identity service, fake provider APIs, and a
default registry wired to both."""

from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest

from toolvalet.auth.broker import TokenBroker
from toolvalet.auth.catalog import ProviderCatalog
from toolvalet.auth.identity import MemoryIdentityClient
from toolvalet.integrations.defaults import build_default_registry
from toolvalet.integrations.http import IntegrationConfig
from toolvalet.result import ToolResult
from toolvalet.tools.base import BaseTool
from toolvalet.tools.dispatcher import Dispatcher
from toolvalet.tools.models import ParameterSpec, ToolDescriptor
from toolvalet.workflow.executor import WorkflowEngine

CRM_URL = "https://crm.test/api"
CALENDAR_URL = "https://www.googleapis.com/calendar/v3"
DOCS_URL = "https://docs.googleapis.com/v1"
DRIVE_URL = "https://www.googleapis.com/drive/v3"

RouteHandler = Callable[[httpx.Request], httpx.Response]


class FakeProviders:
    """
    Routes httpx requests to canned responses by method and URL (query
    string ignored). Every request is recorded. Unrouted requests get 404.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Union[RouteHandler, Tuple[int, Any]]] = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, url: str, json: Any = None, status: int = 200,
           handler: Optional[RouteHandler] = None) -> None:
        self.routes[(method.upper(), url)] = handler or (status, json)

    def timeout(self, method: str, url: str) -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)
        self.on(method, url, handler=_raise)

    def requested(self, method: str, url: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and _route_url(r) == url]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, _route_url(request)))
        if route is None:
            return httpx.Response(404, json={"error": {"message": "not found"}})
        if callable(route):
            return route(request)
        status, body = route
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


def _route_url(request: httpx.Request) -> str:
    return f"{request.url.scheme}://{request.url.host}{request.url.path}"


@pytest.fixture
def catalog():
    return ProviderCatalog.default()


@pytest.fixture
def identity():
    return MemoryIdentityClient()


@pytest.fixture
def broker(identity, catalog):
    return TokenBroker(identity=identity, catalog=catalog)


@pytest.fixture
def providers():
    return FakeProviders()


@pytest.fixture
def integration_config(providers):
    return IntegrationConfig(
        crm_api_url=CRM_URL,
        google_calendar_api_url=CALENDAR_URL,
        google_docs_api_url=DOCS_URL,
        google_drive_api_url=DRIVE_URL,
        transport=providers.transport,
    )


@pytest.fixture
def registry(broker, integration_config):
    return build_default_registry(broker, integration_config)


@pytest.fixture
def dispatcher(registry):
    return Dispatcher(registry)


@pytest.fixture
def engine(dispatcher):
    return WorkflowEngine(dispatcher)


@pytest.fixture
def sample_deal():
    return {
        "id": "d1",
        "name": "Acme Renewal",
        "amount": 50000,
        "stage": "negotiation",
        "probability": 70,
        "closeDate": "2024-06-30",
        "description": "Annual renewal for Acme's analytics seats.",
        "customer": {"id": "c1", "name": "Jane Doe", "email": "jane@acme.com", "company": "Acme"},
        "owner": {"id": "o1", "name": "Sam Seller", "email": "sam@example.com", "position": "Account Executive"},
        "activities": [
            {"type": "call", "date": "2024-05-01", "description": "Pricing review", "customer": "Jane Doe"},
            {"type": "meeting", "date": "2024-05-10", "description": "Security review", "customer": "Bob Lee"},
        ],
        "notes": "Wants a three-year term.",
    }


@pytest.fixture
def make_tool():
    """
    Factory for scripted tools. ``result`` is returned from every call
    (or raised when it is an exception); calls are recorded on ``.calls``.
    """

    def _make(name: str, result: Any = None, parameters=(), scopes=None, broker=None) -> BaseTool:
        class ScriptedTool(BaseTool):
            descriptor = ToolDescriptor(
                name=name,
                description=f"Scripted {name}",
                parameters=tuple(parameters),
                scopes=scopes or {},
            )

            async def execute(self, user_id: str, args) -> ToolResult:
                self.calls.append(dict(args))
                if isinstance(result, BaseException):
                    raise result
                return result

        tool = ScriptedTool(broker=broker)
        tool.calls = []
        return tool

    return _make


@pytest.fixture
def value_param():
    return ParameterSpec("value", "string", "Any value")
