"""
toolvalet Auth Models - Data structures for delegated provider access

Defines:
- Provider: an external system that requires delegated authorization
- ScopeSet helpers: unordered scope comparison by set containment
- StoredToken: the raw token record handed back by the identity service
- AccessToken: a token the broker has checked for the current call
- AuthorizationFailure: why a token could not be handed out
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Tuple

ScopeSet = FrozenSet[str]


def scope_set(scopes: Optional[Iterable[str]] = None) -> ScopeSet:
    """Normalize any iterable of scope strings into a ScopeSet.

    A single space-separated string (the OAuth ``scope`` response format)
    is split into its parts.
    """
    if scopes is None:
        return frozenset()
    if isinstance(scopes, str):
        scopes = scopes.replace(",", " ").split()
    return frozenset(s.strip() for s in scopes if s and s.strip())


def missing_scopes(granted: Iterable[str], required: Iterable[str]) -> ScopeSet:
    """Scopes in ``required`` that ``granted`` does not cover."""
    return scope_set(required) - scope_set(granted)


@dataclass(frozen=True)
class Provider:
    """
    An external service requiring delegated authorization.

    Attributes:
        id: Stable identifier (e.g. "google-calendar")
        name: Human readable name shown on connect prompts
        default_scopes: Scopes requested when nothing more specific is known
    """
    id: str
    name: str
    default_scopes: ScopeSet = frozenset()


@dataclass(frozen=True)
class StoredToken:
    """Token record returned by the identity service for (user, provider)."""
    access_token: str = field(repr=False)
    granted_scopes: ScopeSet = frozenset()
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= now


@dataclass(frozen=True)
class AccessToken:
    """
    A validated, sufficiently scoped token for one tool invocation.

    Owned by the TokenBroker; tools receive it by value for the duration
    of one call and must not keep it.
    """
    provider: str
    value: str = field(repr=False)
    scopes: ScopeSet = frozenset()
    expires_at: Optional[datetime] = None

    @property
    def authorization_header(self) -> str:
        return f"Bearer {self.value}"

    def covers(self, required: Iterable[str]) -> bool:
        return scope_set(required) <= self.scopes


class FailureReason(str, Enum):
    """Why the broker could not hand out a token"""
    NOT_CONNECTED = "not_connected"
    INSUFFICIENT_SCOPE = "insufficient_scope"
    UNAVAILABLE = "unavailable"  # identity service unreachable or erroring


@dataclass(frozen=True)
class AuthorizationFailure:
    """
    Structured broker failure.

    Attributes:
        provider: Provider id the token was requested for
        reason: NOT_CONNECTED, INSUFFICIENT_SCOPE or UNAVAILABLE
        missing_scopes: Exactly the required scopes the user still has to grant
        message: Diagnostic detail (identity error text for UNAVAILABLE)
    """
    provider: str
    reason: FailureReason
    missing_scopes: ScopeSet = frozenset()
    message: str = ""

    @property
    def needs_user_action(self) -> bool:
        """True when reconnecting the provider would resolve the failure."""
        return self.reason in (FailureReason.NOT_CONNECTED, FailureReason.INSUFFICIENT_SCOPE)


@dataclass(frozen=True)
class ConnectionStatus:
    """Snapshot of one provider connection for a user."""
    provider: str
    name: str
    connected: bool
    granted_scopes: Tuple[str, ...] = ()
    expires_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "provider": self.provider,
            "name": self.name,
            "connected": self.connected,
            "grantedScopes": list(self.granted_scopes),
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
        }
