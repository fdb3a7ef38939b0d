from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from tunibus.auth.service import UserService
from tunibus.auth.utils import verify_token
from tunibus.config import settings
from tunibus.database import get_db, utcnow
from tunibus.models import User
from tunibus.roles import ADMIN, DRIVER, is_role_allowed

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/auth/token")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/auth/token", auto_error=False)


def in_maintenance(user: User) -> bool:
    """True while an account is locked for maintenance"""
    if user.status != "maintenance":
        return False
    if user.maintenance_until is None:
        return True
    return user.maintenance_until > utcnow()


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    """Get current authenticated user"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token_data = verify_token(token, credentials_exception)
    user = UserService.get_user_by_id(db, token_data["user_id"])
    if user is None:
        raise credentials_exception

    if in_maintenance(user):
        raise HTTPException(
            status_code=status.HTTP_423_LOCKED,
            detail="Account in maintenance"
        )
    return user


def get_optional_user(token: Optional[str] = Depends(optional_oauth2_scheme), db: Session = Depends(get_db)) -> Optional[User]:
    """Resolve the caller when a valid token is sent, None otherwise"""
    if not token:
        return None
    try:
        return get_current_user(token, db)
    except HTTPException:
        return None


def require_roles(*roles: str):
    """Dependency factory rejecting callers whose role is not listed"""
    def checker(current_user: User = Depends(get_current_user)) -> User:
        if not is_role_allowed(current_user.role, roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions"
            )
        return current_user
    return checker


require_admin = require_roles(ADMIN)
require_staff = require_roles(ADMIN, DRIVER)
