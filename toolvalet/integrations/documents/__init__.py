"""Google Docs integration"""

from .google import GoogleDocsClient
from .tools import CreateDocumentTool

__all__ = ["GoogleDocsClient", "CreateDocumentTool"]
