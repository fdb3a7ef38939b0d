"""
Loyalty Module

Points earned on bookings, transfers between travellers, missions with
progress tracking, reward tiers and badges.
"""

from .router import router
from .service import LoyaltyService, RecipientNotFound

__all__ = ["router", "LoyaltyService", "RecipientNotFound"]
