"""
CRM tools: contacts, deals and deal stakeholders.
"""

import logging
from typing import Any, Mapping, Optional

from ...auth.models import AccessToken
from ...constants import PROVIDER_CRM, SCOPE_CRM_CONTACTS_READ, SCOPE_CRM_DEALS_READ
from ...result import ToolResult
from ...tools.base import BaseTool
from ...tools.models import ParameterSpec, ToolCategory, ToolDescriptor, ValidationError
from .client import CRMClient

logger = logging.getLogger(__name__)


class CRMContactsTool(BaseTool):
    """List CRM contacts, or fetch one by ID."""

    descriptor = ToolDescriptor(
        name="crm_contacts",
        description="Get all contacts or a specific contact by ID. Optionally filter by a search term.",
        parameters=(
            ParameterSpec("contact_id", "string", "ID of a specific contact to retrieve"),
            ParameterSpec("search", "string", "Search term matched against contact names and companies"),
        ),
        scopes={PROVIDER_CRM: {SCOPE_CRM_CONTACTS_READ}},
        category=ToolCategory.CRM,
    )
    connect_message = "CRM access is required to view contacts data"

    async def execute(self, user_id: str, args: Mapping[str, Any]) -> ToolResult:
        contact_id = args.get("contact_id")
        search = args.get("search")

        async def operation(token: AccessToken):
            async with CRMClient(token, self.config) as crm:
                if contact_id:
                    return {"contact": await crm.get_contact(contact_id)}
                return {"contacts": await crm.list_contacts(search=search)}

        return await self.with_token(user_id, PROVIDER_CRM, operation)


class CRMDealsTool(BaseTool):
    """List CRM deals, or fetch one by ID."""

    descriptor = ToolDescriptor(
        name="crm_deals",
        description="Get all deals or a specific deal by ID. Deals can be filtered by contact or stage.",
        parameters=(
            ParameterSpec("deal_id", "string", "ID of a specific deal to retrieve"),
            ParameterSpec("contact_id", "string", "Only deals for this contact"),
            ParameterSpec(
                "stage",
                "string",
                "Only deals in this stage",
                enum=("discovery", "proposal", "negotiation", "closed_won", "closed_lost"),
            ),
        ),
        scopes={PROVIDER_CRM: {SCOPE_CRM_DEALS_READ}},
        category=ToolCategory.CRM,
    )
    connect_message = "CRM access is required to view deals data"

    def check(self, args: Mapping[str, Any]) -> Optional[ValidationError]:
        if args.get("deal_id") and (args.get("contact_id") or args.get("stage")):
            return ValidationError.single("deal_id", "cannot be combined with contact_id or stage filters")
        return None

    async def execute(self, user_id: str, args: Mapping[str, Any]) -> ToolResult:
        deal_id = args.get("deal_id")

        async def operation(token: AccessToken):
            async with CRMClient(token, self.config) as crm:
                if deal_id:
                    return {"deal": await crm.get_deal(deal_id)}
                return {
                    "deals": await crm.list_deals(
                        contact_id=args.get("contact_id"),
                        stage=args.get("stage"),
                    )
                }

        return await self.with_token(user_id, PROVIDER_CRM, operation)


class DealStakeholdersTool(BaseTool):
    descriptor = ToolDescriptor(
        name="crm_deal_stakeholders",
        description="Get the customer contacts and internal owner involved in a deal.",
        parameters=(
            ParameterSpec("deal_id", "string", "ID of the deal", required=True, min_length=1),
        ),
        scopes={PROVIDER_CRM: {SCOPE_CRM_DEALS_READ}},
        category=ToolCategory.CRM,
    )
    connect_message = "CRM access is required to view deal stakeholders"

    async def execute(self, user_id: str, args: Mapping[str, Any]) -> ToolResult:
        async def operation(token: AccessToken):
            async with CRMClient(token, self.config) as crm:
                return await crm.deal_stakeholders(args["deal_id"])

        return await self.with_token(user_id, PROVIDER_CRM, operation)
