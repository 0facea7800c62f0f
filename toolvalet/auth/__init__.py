"""
toolvalet Auth - Delegated provider access

Provides:
- ProviderCatalog: static provider configuration
- IdentityClientProtocol and its clients: where tokens live
- TokenBroker: hands out sufficiently scoped AccessTokens
"""

from .models import (
    AccessToken,
    AuthorizationFailure,
    ConnectionStatus,
    FailureReason,
    Provider,
    ScopeSet,
    StoredToken,
    missing_scopes,
    scope_set,
)
from .catalog import DEFAULT_PROVIDERS, ProviderCatalog, UnknownProviderError
from .identity import (
    IdentityClientProtocol,
    IdentityError,
    MemoryIdentityClient,
    OutboundAppIdentityClient,
)
from .broker import TokenBroker, TokenOutcome

__all__ = [
    # Models
    "AccessToken",
    "AuthorizationFailure",
    "ConnectionStatus",
    "FailureReason",
    "Provider",
    "ScopeSet",
    "StoredToken",
    "missing_scopes",
    "scope_set",
    # Catalog
    "DEFAULT_PROVIDERS",
    "ProviderCatalog",
    "UnknownProviderError",
    # Identity
    "IdentityClientProtocol",
    "IdentityError",
    "MemoryIdentityClient",
    "OutboundAppIdentityClient",
    # Broker
    "TokenBroker",
    "TokenOutcome",
]
