"""
User Administration Module

Back-office management of accounts: listing, maintenance windows, role and
status changes, and account removal.
"""

from .router import router
from .service import UserAdminService

__all__ = ["router", "UserAdminService"]
