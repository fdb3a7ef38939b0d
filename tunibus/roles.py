"""Role vocabulary shared by every module that checks permissions."""
from typing import Iterable

ADMIN = "ADMIN"
SUPER_ADMIN = "SUPER_ADMIN"
DRIVER = "DRIVER"
CLIENT = "CLIENT"

ALL_ROLES = (ADMIN, SUPER_ADMIN, DRIVER, CLIENT)
ADMIN_ROLES = (ADMIN, SUPER_ADMIN)


def normalize_role(value) -> str:
    """Upper-case a role name, falling back to CLIENT for anything unknown"""
    if not value:
        return CLIENT
    role = str(value).strip().upper()
    return role if role in ALL_ROLES else CLIENT


def is_admin_role(value) -> bool:
    return normalize_role(value) in ADMIN_ROLES


def client_role(value) -> str:
    """Role as exposed to API clients, where SUPER_ADMIN reads as ADMIN"""
    role = normalize_role(value)
    return ADMIN if role == SUPER_ADMIN else role


def is_role_allowed(role, allowed: Iterable[str]) -> bool:
    role = normalize_role(role)
    allowed = {normalize_role(r) for r in allowed}
    if role in allowed:
        return True
    return role == SUPER_ADMIN and ADMIN in allowed
