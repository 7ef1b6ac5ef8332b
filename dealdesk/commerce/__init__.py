"""dealdesk commerce core.

Subsystems:
- projects: listing reference data and user contacts (read-mostly)
- notifications: in-app notification sink, email sender, async dispatcher
- offers: offer / counter-offer negotiation
- transactions: escrow-backed purchases
- featured: time-limited featured placement

Shared pieces:
- CommerceConfig: business constants
- CommerceError and its categories (validation, permission, not found)
"""

from dealdesk.commerce.config import CommerceConfig
from dealdesk.commerce.errors import (
    CommerceError,
    CommerceNotFoundError,
    CommercePermissionError,
    CommerceValidationError,
    StaleStateError,
)

__all__ = [
    "CommerceConfig",
    "CommerceError",
    "CommerceValidationError",
    "CommercePermissionError",
    "CommerceNotFoundError",
    "StaleStateError",
]
