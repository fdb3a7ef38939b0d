"""
Authentication Module

Account registration, login and token handling for the TuniBus API.

Key Components:
- utils.py: password hashing (bcrypt) and JWT encoding/decoding
- service.py: UserService with signup, credential checks, activity logging and TOTP enrolment
- dependencies.py: get_current_user, get_optional_user and role guards
- router.py: /auth endpoints
"""

from .router import router
from .service import UserService
from .dependencies import get_current_user, get_optional_user, require_roles, require_admin, require_staff

__all__ = [
    "router",
    "UserService",
    "get_current_user",
    "get_optional_user",
    "require_roles",
    "require_admin",
    "require_staff",
]
