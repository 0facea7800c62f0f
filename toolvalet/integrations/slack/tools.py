"""
Slack tool: one tool, several actions selected by ``action``.
"""

import logging
from typing import Any, Mapping, Optional

from ...auth.models import AccessToken
from ...constants import PROVIDER_SLACK, SLACK_SCOPES
from ...result import ToolResult
from ...tools.base import BaseTool
from ...tools.models import ParameterSpec, ToolCategory, ToolDescriptor, ValidationError
from .client import SlackClient

logger = logging.getLogger(__name__)

ACTIONS = ("send_message", "create_channel", "invite_user", "get_messages", "search")

# actions that act on an existing channel
CHANNEL_ACTIONS = ("send_message", "invite_user", "get_messages")


class SlackTool(BaseTool):
    """Send messages, manage channels and read history in the user's Slack workspace."""

    descriptor = ToolDescriptor(
        name="slack",
        description=(
            "Interact with Slack: send messages, create channels, invite users, "
            "read channel history and search messages."
        ),
        parameters=(
            ParameterSpec("action", "string", "The Slack action to perform", required=True, enum=ACTIONS),
            ParameterSpec("channel_id", "string", "Slack channel ID"),
            ParameterSpec("channel_name", "string", "Channel name, without '#'"),
            ParameterSpec("text", "string", "Message text for send_message", max_length=40000),
            ParameterSpec("topic", "string", "Topic for a new channel"),
            ParameterSpec("user_emails", "array", "Emails of users to invite", items="string", format="email"),
            ParameterSpec("query", "string", "Search query"),
            ParameterSpec("limit", "integer", "Maximum number of messages to return", minimum=1, maximum=100),
            ParameterSpec("oldest", "string", "Only messages after this Slack timestamp"),
            ParameterSpec("latest", "string", "Only messages before this Slack timestamp"),
        ),
        scopes={PROVIDER_SLACK: set(SLACK_SCOPES)},
        category=ToolCategory.MESSAGING,
    )
    connect_message = "Slack access is required to use Slack features"

    def check(self, args: Mapping[str, Any]) -> Optional[ValidationError]:
        action = args["action"]
        problems = []
        if action in CHANNEL_ACTIONS and not (args.get("channel_id") or args.get("channel_name")):
            problems.append(("channel_id", f"channel_id or channel_name is required for {action}"))
        if action == "send_message" and not args.get("text"):
            problems.append(("text", "is required for send_message"))
        if action == "create_channel" and not args.get("channel_name"):
            problems.append(("channel_name", "is required for create_channel"))
        if action == "invite_user" and not args.get("user_emails"):
            problems.append(("user_emails", "at least one email is required for invite_user"))
        if action == "search" and not args.get("query"):
            problems.append(("query", "is required for search"))
        return ValidationError.collect(problems)

    async def execute(self, user_id: str, args: Mapping[str, Any]) -> ToolResult:
        action = args["action"]

        async def operation(token: AccessToken):
            async with SlackClient(token, self.config) as slack:
                if action == "create_channel":
                    return await slack.create_channel(args["channel_name"], topic=args.get("topic"))
                if action == "search":
                    return await slack.search(args["query"], limit=args.get("limit"))

                channel_id = await slack.resolve_channel(args.get("channel_id"), args.get("channel_name"))
                if action == "send_message":
                    return await slack.send_message(channel_id, args["text"])
                if action == "invite_user":
                    user_ids = await slack.lookup_user_ids(args["user_emails"])
                    if not user_ids:
                        return {"channel_id": channel_id, "users_invited": 0, "already_members": False}
                    return await slack.invite_users(channel_id, user_ids)
                return await slack.get_messages(
                    channel_id,
                    limit=args.get("limit", 10),
                    oldest=args.get("oldest"),
                    latest=args.get("latest"),
                )

        logger.info(f"Slack action '{action}' for user {user_id}")
        return await self.with_token(user_id, PROVIDER_SLACK, operation)
