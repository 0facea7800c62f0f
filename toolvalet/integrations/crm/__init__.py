"""CRM integration"""

from .client import CRMClient
from .tools import CRMContactsTool, CRMDealsTool, DealStakeholdersTool

__all__ = [
    "CRMClient",
    "CRMContactsTool",
    "CRMDealsTool",
    "DealStakeholdersTool",
]
