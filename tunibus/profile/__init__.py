"""
Profile Module

Self-service account management: personal details, notification toggles,
password change, stored payment methods, personal data export, deletion
requests and the history of profile snapshots.
"""

from .router import router
from .service import ProfileService

__all__ = ["router", "ProfileService"]
