"""
Notifications Module

In-app notifications with per-user routing rules: profile toggles, channel
preferences, priority thresholds, quiet mode digests, vacation delegation
and explicit delegations to another user.
"""

from .router import router
from .service import NotificationService

__all__ = ["router", "NotificationService"]
