"""
Document tools backed by Google Docs.
"""

from typing import Any, Mapping

from ...auth.models import AccessToken
from ...constants import DOCUMENT_SCOPES, PROVIDER_GOOGLE_DOCS
from ...result import ToolResult
from ...tools.base import BaseTool
from ...tools.models import ParameterSpec, ToolCategory, ToolDescriptor
from .google import GoogleDocsClient


class CreateDocumentTool(BaseTool):
    """Create a Google Doc with the given title and text content."""

    descriptor = ToolDescriptor(
        name="create_document",
        description="Create a Google Docs document with a title and text content.",
        parameters=(
            ParameterSpec("title", "string", "Document title", required=True, min_length=1, max_length=256),
            ParameterSpec("content", "string", "Document body text", required=True),
        ),
        scopes={PROVIDER_GOOGLE_DOCS: set(DOCUMENT_SCOPES)},
        category=ToolCategory.DOCUMENTS,
    )
    connect_message = "Google Docs access is required to create documents"

    async def execute(self, user_id: str, args: Mapping[str, Any]) -> ToolResult:
        async def operation(token: AccessToken):
            async with GoogleDocsClient(token, self.config) as docs:
                return await docs.create_document(args["title"], args["content"])

        return await self.with_token(user_id, PROVIDER_GOOGLE_DOCS, operation)
