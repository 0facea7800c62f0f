"""
Shared constants for toolvalet.

Centralizes provider identifiers and scope strings that are needed by
the auth layer, the built-in tools and the workflow definitions.
"""

from typing import Tuple

# ── Provider ids ──
# These must match the app ids configured in the identity service.

PROVIDER_CRM = "custom-crm"
PROVIDER_GOOGLE_CALENDAR = "google-calendar"
PROVIDER_GOOGLE_DOCS = "google-docs"
PROVIDER_SLACK = "slack"

# ── CRM scopes ──

SCOPE_CRM_CONTACTS_READ = "contacts:read"
SCOPE_CRM_DEALS_READ = "deals:read"

# ── Google scopes ──

SCOPE_CALENDAR = "https://www.googleapis.com/auth/calendar"
SCOPE_CALENDAR_READONLY = "https://www.googleapis.com/auth/calendar.readonly"
SCOPE_DOCUMENTS = "https://www.googleapis.com/auth/documents"
SCOPE_DRIVE_FILE = "https://www.googleapis.com/auth/drive.file"

CALENDAR_SCOPES: Tuple[str, ...] = (SCOPE_CALENDAR_READONLY, SCOPE_CALENDAR)
DOCUMENT_SCOPES: Tuple[str, ...] = (SCOPE_DOCUMENTS, SCOPE_DRIVE_FILE)

# ── Slack scopes ──

SCOPE_SLACK_CHAT_WRITE = "chat:write"
SCOPE_SLACK_CHANNELS_MANAGE = "channels:manage"
SCOPE_SLACK_USERS_READ = "users:read"

SLACK_SCOPES: Tuple[str, ...] = (SCOPE_SLACK_CHAT_WRITE, SCOPE_SLACK_CHANNELS_MANAGE, SCOPE_SLACK_USERS_READ)

# ── Connection signal ──

CONNECTION_ACTION_SCHEME = "connection://"
CONNECTION_REQUIRED_TYPE = "connection_required"

# ── Defaults ──

DEFAULT_HTTP_TIMEOUT = 30.0
GOOGLE_DOCS_URL_TEMPLATE = "https://docs.google.com/document/d/{document_id}"
