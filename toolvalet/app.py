"""
toolvalet Application - Single entry point for tool dispatch and workflows.

Usage:
    from toolvalet import ToolValet

    app = ToolValet("config.yaml")

    result = await app.dispatch("crm_deals", {"deal_id": "d1"}, user_id="u1")
    summary = await app.run_workflow("deal-summary", {"deal_id": "d1"}, user_id="u1")
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import httpx

from .audit_logger import AuditLogger
from .auth.broker import TokenBroker
from .auth.identity import IdentityClientProtocol, MemoryIdentityClient, OutboundAppIdentityClient
from .auth.models import AccessToken, ConnectionStatus, scope_set
from .config import Settings, load_settings
from .connection import from_authorization_failure, to_wire
from .integrations.defaults import build_default_registry
from .result import ErrorKind, Failure, Success, ToolResult
from .streaming.models import ProgressSink
from .tools.dispatcher import Dispatcher
from .tools.registry import ToolRegistry
from .workflow.builtin import register_builtin_workflows
from .workflow.executor import WorkflowEngine
from .workflow.loader import WorkflowLoader, WorkflowRegistry
from .workflow.models import WorkflowResult

logger = logging.getLogger(__name__)


def build_identity_client(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> IdentityClientProtocol:
    identity = settings.identity
    if identity.backend == "outbound":
        return OutboundAppIdentityClient(
            base_url=identity.base_url,
            project_id=identity.project_id,
            management_key=identity.management_key,
            timeout=settings.http_timeout,
            transport=transport,
        )
    logger.warning("Using in-memory identity backend; tokens are not persisted")
    return MemoryIdentityClient(authorize_base_url=identity.authorize_base_url)


class ToolValet:
    """
    toolvalet application.

    Construction is the process initialization step: it builds the
    provider catalog, the Token Broker, the tool registry (frozen), the
    Dispatcher, the Workflow Engine and the workflow registry. Everything
    after that is per request.

    Args:
        settings: A Settings object, a path to a YAML config file, or
            None to use ``$TOOLVALET_CONFIG`` / defaults.
        identity: Identity client override (tests pass MemoryIdentityClient)
        transport: httpx transport for every provider and identity call
        registry: Tool registry override

    Example:
        app = ToolValet(Settings(crm_api_url="https://crm.example.com/api"))
        result = await app.dispatch("get_weather", {"location": "Berlin"}, user_id="u1")
    """

    def __init__(
        self,
        settings: Optional[Union[Settings, str, Path]] = None,
        identity: Optional[IdentityClientProtocol] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        registry: Optional[ToolRegistry] = None,
        audit: Optional[AuditLogger] = None,
    ):
        if not isinstance(settings, Settings):
            settings = load_settings(settings)
        self.settings = settings

        self.catalog = settings.catalog()
        self.identity = identity or build_identity_client(settings, transport=transport)
        self.broker = TokenBroker(self.identity, self.catalog)

        self.registry = registry or build_default_registry(
            self.broker, settings.integration_config(transport=transport)
        )
        if not self.registry.frozen:
            self.registry.freeze()

        self.audit = audit or AuditLogger()
        self.dispatcher = Dispatcher(self.registry, audit=self.audit)
        self.engine = WorkflowEngine(self.dispatcher, audit=self.audit)

        self.workflows = register_builtin_workflows(WorkflowRegistry())
        if settings.workflows_path:
            WorkflowLoader(tools=self.registry, workflows=self.workflows).load_path(settings.workflows_path)

        logger.info(
            f"ToolValet ready: {len(self.registry)} tools, {len(self.workflows)} workflows, "
            f"{len(self.catalog)} providers"
        )

    # ── Tools ──

    def list_tools(self) -> List[Dict[str, Any]]:
        """Capability advertisement: [{name, description, parameters}]"""
        return self.registry.schemas()

    async def dispatch(
        self,
        tool_name: str,
        args: Optional[Mapping[str, Any]],
        user_id: str,
        correlation_id: Optional[str] = None,
        progress: Optional[ProgressSink] = None,
    ) -> ToolResult:
        return await self.dispatcher.call(
            tool_name, args, user_id, correlation_id=correlation_id, progress=progress
        )

    async def dispatch_wire(
        self,
        tool_name: str,
        args: Optional[Mapping[str, Any]],
        user_id: str,
        correlation_id: Optional[str] = None,
        progress: Optional[ProgressSink] = None,
    ) -> Dict[str, Any]:
        """``dispatch`` rendered in the JSON wire shape."""
        result = await self.dispatch(tool_name, args, user_id, correlation_id, progress)
        return to_wire(result)

    # ── Workflows ──

    def list_workflows(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": definition.name,
                "description": definition.description,
                "steps": [step.name for step in definition.steps],
            }
            for definition in self.workflows
        ]

    async def run_workflow(
        self,
        workflow_name: str,
        initial_args: Optional[Mapping[str, Any]],
        user_id: str,
        progress: Optional[ProgressSink] = None,
    ) -> WorkflowResult:
        """
        Raises:
            UnknownWorkflowError: No workflow registered under that name
        """
        definition = self.workflows.get(workflow_name)
        return await self.engine.run_definition(definition, user_id, initial_args, progress=progress)

    # ── Connections ──

    async def connections(self, user_id: str) -> List[ConnectionStatus]:
        statuses = await self.broker.connection_status(user_id)
        return list(statuses.values())

    async def connect(
        self,
        user_id: str,
        provider: str,
        scopes: Optional[List[str]] = None,
        redirect_url: Optional[str] = None,
        state: Optional[str] = None,
    ) -> str:
        """Authorization URL the user must visit to grant ``scopes``."""
        return await self.broker.authorization_url(
            user_id,
            provider,
            scopes,
            redirect_url=redirect_url or self.settings.redirect_url,
            state=state,
        )

    async def disconnect(self, user_id: str, provider: str) -> bool:
        return await self.broker.disconnect(user_id, provider)

    async def check_scopes(
        self,
        user_id: str,
        provider: str,
        tool: Optional[str] = None,
        scopes: Optional[List[str]] = None,
    ) -> ToolResult:
        """
        Whether ``user_id`` already holds the scopes an operation needs.

        Required scopes are ``scopes`` when given, else what ``tool``
        declares for ``provider``, else the provider's default scopes.

        Returns:
            Success with the granted scopes, ConnectionRequired, or
            Failure(PROVIDER_ERROR) when the identity service is down

        Raises:
            ToolNotFoundError: ``tool`` is not registered
            UnknownProviderError: provider is not in the catalog
            ValueError: user_id is empty
        """
        message = None
        if scopes is not None:
            required = scope_set(scopes)
        elif tool:
            registered = self.registry.get(tool)
            required = registered.descriptor.scopes_for(provider)
            message = registered.connect_message
        else:
            required = self.catalog.get(provider).default_scopes

        outcome = await self.broker.acquire_token(user_id, provider, required)
        if isinstance(outcome, AccessToken):
            return Success(data={"provider": provider, "scopes": sorted(outcome.scopes)})
        if not outcome.needs_user_action:
            return Failure(
                kind=ErrorKind.PROVIDER_ERROR,
                message=f"Could not check {self.catalog.display_name(provider)} access: {outcome.message}",
            )
        return from_authorization_failure(outcome, catalog=self.catalog, message=message)
