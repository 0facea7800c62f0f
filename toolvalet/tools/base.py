"""
toolvalet Tool contract

Every integration subclasses BaseTool:

    class CRMDealsTool(BaseTool):
        descriptor = ToolDescriptor(
            name="crm_deals",
            description="Get all deals or a specific deal by ID",
            parameters=(ParameterSpec("deal_id", "string", "Deal to fetch"),),
            scopes={"custom-crm": {"deals:read"}},
            category=ToolCategory.CRM,
        )

        async def execute(self, user_id, args):
            return await self.with_token(user_id, "custom-crm", lambda token: ...)

``execute`` must return a ToolResult. Provider 401/403 responses become
ConnectionRequired (an expired or revoked token needs the same remedy as
a missing one); other provider errors become Failure(PROVIDER_ERROR).
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from ..auth.broker import TokenBroker
from ..auth.models import AccessToken, AuthorizationFailure, FailureReason
from ..connection import connection_required, from_authorization_failure
from ..integrations.http import IntegrationConfig, ProviderAuthError, ProviderError
from ..result import ErrorKind, Failure, Success, ToolResult
from .models import ToolDescriptor, ValidationError
from .validation import validate_arguments

logger = logging.getLogger(__name__)


class BaseTool(ABC):
    """
    Base class for tools.

    Attributes:
        descriptor: Class-level ToolDescriptor (immutable)
        connect_message: Optional user-facing text for connection prompts
    """

    descriptor: ToolDescriptor
    connect_message: Optional[str] = None

    def __init__(
        self,
        broker: Optional[TokenBroker] = None,
        config: Optional[IntegrationConfig] = None,
    ):
        if getattr(self, "descriptor", None) is None:
            raise TypeError(f"{type(self).__name__} must define a descriptor")
        if self.descriptor.scopes and broker is None:
            raise ValueError(f"Tool '{self.descriptor.name}' needs provider access and requires a broker")
        self.broker = broker
        self.config = config or IntegrationConfig()

    @property
    def name(self) -> str:
        return self.descriptor.name

    def validate(self, args: Any) -> Optional[ValidationError]:
        """Schema check, then the tool's own cross-field check. No side effects."""
        error = validate_arguments(self.descriptor, args)
        if error is not None:
            return error
        return self.check(args)

    def check(self, args: Mapping[str, Any]) -> Optional[ValidationError]:
        """Override for rules the schema cannot express."""
        return None

    @abstractmethod
    async def execute(self, user_id: str, args: Mapping[str, Any]) -> ToolResult:
        """Run the tool. Arguments have already been validated."""

    # ─── Helpers for provider-backed tools ───

    def _provider_name(self, provider: str) -> str:
        if self.broker is None:
            return provider
        return self.broker.catalog.display_name(provider)

    async def acquire(self, user_id: str, provider: str) -> Union[AccessToken, ToolResult]:
        """
        Token for ``provider`` with this tool's declared scopes, or the
        ToolResult to return instead.
        """
        outcome = await self.broker.acquire_token(
            user_id, provider, self.descriptor.scopes_for(provider)
        )
        if isinstance(outcome, AccessToken):
            return outcome
        return self._from_authorization_failure(outcome)

    def _from_authorization_failure(self, failure: AuthorizationFailure) -> ToolResult:
        if failure.reason == FailureReason.UNAVAILABLE:
            return Failure(
                kind=ErrorKind.PROVIDER_ERROR,
                message=f"Could not check {self._provider_name(failure.provider)} access: {failure.message}",
            )
        return from_authorization_failure(
            failure,
            catalog=self.broker.catalog,
            message=self.connect_message,
        )

    def from_provider_error(self, error: ProviderError) -> ToolResult:
        """Map a provider exception onto the result vocabulary."""
        if isinstance(error, ProviderAuthError):
            # Token was accepted by the broker but rejected upstream: re-grant everything this tool needs
            return connection_required(
                provider=error.provider,
                missing_scopes=self.descriptor.scopes_for(error.provider),
                message=self.connect_message
                or f"Your {self._provider_name(error.provider)} connection is no longer valid. Please reconnect.",
                provider_name=self._provider_name(error.provider),
                error=error.message,
            )
        return Failure(kind=ErrorKind.PROVIDER_ERROR, message=error.message)

    async def with_token(
        self,
        user_id: str,
        provider: str,
        operation: Callable[[AccessToken], Awaitable[Any]],
    ) -> ToolResult:
        """
        Acquire a token, run ``operation(token)`` and wrap its return value
        in Success. Provider errors are translated; anything else
        propagates to the dispatcher.
        """
        token = await self.acquire(user_id, provider)
        if not isinstance(token, AccessToken):
            return token
        try:
            data = await operation(token)
        except ProviderError as e:
            return self.from_provider_error(e)
        return Success(data=data)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.descriptor.name}>"
