"""
Token Broker - Hands out sufficiently scoped provider tokens

Given a user, a provider and the scopes an operation needs, the broker
either returns an AccessToken or an AuthorizationFailure. "The user has
not connected yet" is an expected outcome, so it is a return value and
never an exception.

The broker keeps no token cache: token state changes out-of-band when a
concurrent OAuth flow completes, so every call asks the identity
service again.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Union

from .catalog import ProviderCatalog
from .identity import IdentityClientProtocol, IdentityError
from .models import (
    AccessToken,
    AuthorizationFailure,
    ConnectionStatus,
    FailureReason,
    scope_set,
)

logger = logging.getLogger(__name__)

TokenOutcome = Union[AccessToken, AuthorizationFailure]


class TokenBroker:
    """
    Resolves provider tokens for tool invocations.

    Usage:
        broker = TokenBroker(identity=MemoryIdentityClient(), catalog=ProviderCatalog.default())
        outcome = await broker.acquire_token("u1", "custom-crm", {"deals:read"})
        if isinstance(outcome, AuthorizationFailure):
            ...  # surface ConnectionRequired
    """

    def __init__(self, identity: IdentityClientProtocol, catalog: ProviderCatalog):
        self.identity = identity
        self.catalog = catalog

    async def acquire_token(
        self,
        user_id: str,
        provider: str,
        required_scopes: Optional[Iterable[str]] = None,
    ) -> TokenOutcome:
        """
        Get a token for ``provider`` granting at least ``required_scopes``.

        Args:
            user_id: Caller identity (non-empty)
            provider: Known provider id
            required_scopes: Scopes needed; empty means any valid token suffices

        Returns:
            AccessToken, or AuthorizationFailure with reason NOT_CONNECTED,
            INSUFFICIENT_SCOPE (missing_scopes = required - granted) or
            UNAVAILABLE

        Raises:
            ValueError: user_id is empty
            UnknownProviderError: provider is not in the catalog
        """
        if not user_id:
            raise ValueError("user_id is required")
        self.catalog.get(provider)
        required = scope_set(required_scopes)

        try:
            stored = await self.identity.get_token(user_id, provider)
        except IdentityError as e:
            logger.error(f"Token lookup failed for user={user_id} provider={provider}: {e}")
            return AuthorizationFailure(
                provider=provider,
                reason=FailureReason.UNAVAILABLE,
                message=str(e),
            )

        if stored is None:
            logger.info(f"No {provider} token for user={user_id}")
            return AuthorizationFailure(
                provider=provider,
                reason=FailureReason.NOT_CONNECTED,
                missing_scopes=required,
                message=f"{self.catalog.display_name(provider)} is not connected",
            )

        if stored.is_expired(datetime.now(timezone.utc)):
            logger.info(f"{provider} token for user={user_id} expired at {stored.expires_at}")
            return AuthorizationFailure(
                provider=provider,
                reason=FailureReason.NOT_CONNECTED,
                missing_scopes=required,
                message=f"{self.catalog.display_name(provider)} connection has expired",
            )

        missing = required - stored.granted_scopes
        if missing:
            logger.info(
                f"{provider} token for user={user_id} lacks scopes: {', '.join(sorted(missing))}"
            )
            return AuthorizationFailure(
                provider=provider,
                reason=FailureReason.INSUFFICIENT_SCOPE,
                missing_scopes=frozenset(missing),
                message=f"{self.catalog.display_name(provider)} needs additional permissions",
            )

        return AccessToken(
            provider=provider,
            value=stored.access_token,
            scopes=stored.granted_scopes,
            expires_at=stored.expires_at,
        )

    async def connection_status(self, user_id: str) -> Dict[str, ConnectionStatus]:
        """Connection state of every catalog provider for ``user_id``."""
        if not user_id:
            raise ValueError("user_id is required")

        statuses: Dict[str, ConnectionStatus] = {}
        now = datetime.now(timezone.utc)
        for provider in self.catalog:
            try:
                stored = await self.identity.get_token(user_id, provider.id)
            except IdentityError as e:
                logger.warning(f"Status lookup failed for {provider.id}: {e}")
                stored = None

            connected = stored is not None and not stored.is_expired(now)
            statuses[provider.id] = ConnectionStatus(
                provider=provider.id,
                name=provider.name,
                connected=connected,
                granted_scopes=tuple(sorted(stored.granted_scopes)) if connected else (),
                expires_at=stored.expires_at if connected else None,
            )
        return statuses

    async def authorization_url(
        self,
        user_id: str,
        provider: str,
        required_scopes: Optional[Iterable[str]],
        redirect_url: str,
        state: Optional[str] = None,
    ) -> str:
        """
        Ask the identity service where to send the user to grant scopes.

        Falls back to the provider's default scopes when none are given.

        Raises:
            IdentityError: the identity service refused or is unreachable
        """
        if not user_id:
            raise ValueError("user_id is required")
        entry = self.catalog.get(provider)
        scopes = scope_set(required_scopes) or entry.default_scopes
        url = await self.identity.build_authorization_url(
            provider=provider,
            user_id=user_id,
            required_scopes=scopes,
            redirect_url=redirect_url,
            state=state,
        )
        logger.info(f"Issued {provider} authorization URL for user={user_id}")
        return url

    async def disconnect(self, user_id: str, provider: str) -> bool:
        """Revoke the user's token. Returns False if nothing was stored."""
        if not user_id:
            raise ValueError("user_id is required")
        self.catalog.get(provider)
        revoked = await self.identity.revoke_token(user_id, provider)
        logger.info(f"Disconnect {provider} for user={user_id}: {'revoked' if revoked else 'not found'}")
        return revoked
