"""
CRM API client.

Thin wrapper over ProviderClient for the CRM REST API. List endpoints
answer either a bare list or ``{"data": [...]}``; both are accepted.
"""

import logging
from typing import Any, Dict, List, Optional

from ...auth.models import AccessToken
from ...constants import PROVIDER_CRM
from ..http import IntegrationConfig, ProviderClient, ProviderError

logger = logging.getLogger(__name__)


def _unwrap(payload: Any) -> Any:
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def _as_list(payload: Any) -> List[Dict[str, Any]]:
    data = _unwrap(payload)
    if data is None:
        return []
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return [data]
    raise ProviderError(PROVIDER_CRM, "Unexpected response format from CRM API")


def _activity_customer(activity: Any) -> Optional[str]:
    """Activities name their customer either as a string or as a contact object."""
    if not isinstance(activity, dict):
        return None
    customer = activity.get("customer")
    if isinstance(customer, dict):
        customer = customer.get("name")
    return customer if isinstance(customer, str) else None


class CRMClient:
    """
    CRM operations used by the CRM tools.

    Usage:
        async with CRMClient(token, config) as crm:
            deal = await crm.get_deal("deal-123")
    """

    def __init__(self, token: AccessToken, config: IntegrationConfig):
        self._http = ProviderClient(
            PROVIDER_CRM,
            config.crm_api_url,
            token,
            timeout=config.timeout,
            transport=config.transport,
        )

    async def __aenter__(self) -> "CRMClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self._http.__aexit__(*exc)

    async def list_contacts(self, search: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"q": search} if search else None
        contacts = _as_list(await self._http.get("/contacts", params=params))
        logger.info(f"Retrieved {len(contacts)} CRM contacts")
        return contacts

    async def get_contact(self, contact_id: str) -> Dict[str, Any]:
        return _unwrap(await self._http.get(f"/contacts/{contact_id}"))

    async def list_deals(
        self,
        contact_id: Optional[str] = None,
        stage: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {}
        if contact_id:
            params["customerId"] = contact_id
        if stage:
            params["stage"] = stage
        deals = _as_list(await self._http.get("/deals", params=params or None))
        logger.info(f"Retrieved {len(deals)} CRM deals")
        return deals

    async def get_deal(self, deal_id: str) -> Dict[str, Any]:
        deal = _unwrap(await self._http.get(f"/deals/{deal_id}"))
        if isinstance(deal, list):
            if not deal:
                raise ProviderError(PROVIDER_CRM, f"Deal with ID {deal_id} not found", status_code=404)
            deal = deal[0]
        return deal

    async def deal_stakeholders(self, deal_id: str) -> Dict[str, Any]:
        """
        Primary customer contact, deal owner, and any other customers
        mentioned in the deal's activities.
        """
        deal = await self.get_deal(deal_id)
        customer = deal.get("customer") or {}
        owner = deal.get("owner") or {}
        stakeholders: List[Dict[str, Any]] = []

        if customer:
            stakeholders.append({
                "type": "customer",
                "id": customer.get("id"),
                "name": customer.get("name"),
                "email": customer.get("email"),
                "company": customer.get("company"),
                "role": "Primary Contact",
            })
        if owner:
            stakeholders.append({
                "type": "internal",
                "id": owner.get("id"),
                "name": owner.get("name"),
                "email": owner.get("email"),
                "position": owner.get("position"),
                "role": "Deal Owner",
            })

        mentioned = {
            name for name in (_activity_customer(a) for a in deal.get("activities") or [])
            if name and name != customer.get("name")
        }
        if mentioned:
            for contact in await self.list_contacts():
                if contact.get("name") in mentioned and contact.get("id") != customer.get("id"):
                    stakeholders.append({
                        "type": "customer",
                        "id": contact.get("id"),
                        "name": contact.get("name"),
                        "email": contact.get("email"),
                        "company": contact.get("company"),
                        "role": "Additional Contact",
                    })

        return {
            "deal_id": deal.get("id", deal_id),
            "deal_name": deal.get("name"),
            "stakeholders": stakeholders,
        }
