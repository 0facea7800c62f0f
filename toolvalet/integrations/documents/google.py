"""
Google Docs client.

A document is created as an empty Drive file of the Docs mime type, then
filled with one ``insertText`` batch update. Both calls use the same
google-docs token.
"""

import logging
from typing import Any, Dict

from ...auth.models import AccessToken
from ...constants import GOOGLE_DOCS_URL_TEMPLATE, PROVIDER_GOOGLE_DOCS
from ..http import IntegrationConfig, ProviderClient, ProviderError

logger = logging.getLogger(__name__)

GOOGLE_DOC_MIME_TYPE = "application/vnd.google-apps.document"


class GoogleDocsClient:
    def __init__(self, token: AccessToken, config: IntegrationConfig):
        # both URLs are checked before either httpx client is opened
        for label, url in (("Drive", config.google_drive_api_url), ("Docs", config.google_docs_api_url)):
            if not url:
                raise ProviderError(PROVIDER_GOOGLE_DOCS, f"Google {label} API URL is not configured")
        self._drive = ProviderClient(
            PROVIDER_GOOGLE_DOCS,
            config.google_drive_api_url,
            token,
            timeout=config.timeout,
            transport=config.transport,
        )
        self._docs = ProviderClient(
            PROVIDER_GOOGLE_DOCS,
            config.google_docs_api_url,
            token,
            timeout=config.timeout,
            transport=config.transport,
        )

    async def __aenter__(self) -> "GoogleDocsClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self._drive.__aexit__(*exc)
        await self._docs.__aexit__(*exc)

    async def create_document(self, title: str, content: str) -> Dict[str, Any]:
        created = await self._drive.post(
            "/files",
            json={"name": title, "mimeType": GOOGLE_DOC_MIME_TYPE},
        ) or {}
        document_id = created.get("id")
        if not document_id:
            raise ProviderError(PROVIDER_GOOGLE_DOCS, "Document creation returned no id")

        if content:
            await self._docs.post(
                f"/documents/{document_id}:batchUpdate",
                json={"requests": [{"insertText": {"location": {"index": 1}, "text": content}}]},
            )

        logger.info(f"Created Google Doc {document_id}: {title}")
        return {
            "document_id": document_id,
            "document_url": GOOGLE_DOCS_URL_TEMPLATE.format(document_id=document_id),
            "title": created.get("name", title),
        }
