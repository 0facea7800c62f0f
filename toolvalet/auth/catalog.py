"""
Provider Catalog - Static configuration of known providers

The catalog is built once at process start (from config or the built-in
defaults) and is read-only afterwards.
"""

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping

from ..constants import (
    PROVIDER_CRM,
    PROVIDER_GOOGLE_CALENDAR,
    PROVIDER_GOOGLE_DOCS,
    PROVIDER_SLACK,
    SCOPE_CRM_CONTACTS_READ,
    SCOPE_CRM_DEALS_READ,
    CALENDAR_SCOPES,
    DOCUMENT_SCOPES,
    SLACK_SCOPES,
)
from .models import Provider, scope_set

logger = logging.getLogger(__name__)


class UnknownProviderError(KeyError):
    """Raised when a provider id is not in the catalog"""

    def __init__(self, provider: str):
        super().__init__(provider)
        self.provider = provider

    def __str__(self) -> str:
        return f"Unknown provider '{self.provider}'"


DEFAULT_PROVIDERS: List[Provider] = [
    Provider(
        id=PROVIDER_CRM,
        name="CRM",
        default_scopes=scope_set([SCOPE_CRM_CONTACTS_READ, SCOPE_CRM_DEALS_READ]),
    ),
    Provider(
        id=PROVIDER_GOOGLE_CALENDAR,
        name="Google Calendar",
        default_scopes=scope_set(CALENDAR_SCOPES),
    ),
    Provider(
        id=PROVIDER_GOOGLE_DOCS,
        name="Google Docs",
        default_scopes=scope_set(DOCUMENT_SCOPES),
    ),
    Provider(
        id=PROVIDER_SLACK,
        name="Slack",
        default_scopes=scope_set(SLACK_SCOPES),
    ),
]


class ProviderCatalog:
    """
    Immutable map of provider id -> Provider.

    Example:
        catalog = ProviderCatalog.default()
        provider = catalog.get("google-calendar")
        provider.name  # "Google Calendar"
    """

    def __init__(self, providers: Iterable[Provider]):
        items: Dict[str, Provider] = {}
        for provider in providers:
            if provider.id in items:
                raise ValueError(f"Provider '{provider.id}' defined twice")
            items[provider.id] = provider
        self._providers: Mapping[str, Provider] = MappingProxyType(items)

    @classmethod
    def default(cls) -> "ProviderCatalog":
        return cls(DEFAULT_PROVIDERS)

    @classmethod
    def from_dicts(cls, entries: Iterable[Mapping[str, Any]]) -> "ProviderCatalog":
        """Build from config entries: {id, name, default_scopes}"""
        providers = []
        for entry in entries:
            providers.append(Provider(
                id=entry["id"],
                name=entry.get("name") or entry["id"],
                default_scopes=scope_set(entry.get("default_scopes", [])),
            ))
        catalog = cls(providers)
        logger.info(f"Loaded {len(catalog)} providers: {', '.join(catalog.ids())}")
        return catalog

    def get(self, provider_id: str) -> Provider:
        try:
            return self._providers[provider_id]
        except KeyError:
            raise UnknownProviderError(provider_id) from None

    def display_name(self, provider_id: str) -> str:
        """Human name, falling back to the id for unknown providers."""
        provider = self._providers.get(provider_id)
        return provider.name if provider else provider_id

    def ids(self) -> List[str]:
        return list(self._providers.keys())

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def __iter__(self) -> Iterator[Provider]:
        return iter(self._providers.values())

    def __len__(self) -> int:
        return len(self._providers)

    def __repr__(self) -> str:
        return f"<ProviderCatalog providers={len(self._providers)}>"
