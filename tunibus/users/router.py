from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from tunibus.auth.dependencies import get_current_user, require_admin
from tunibus.auth.schemas import UserPublic
from tunibus.database import get_db
from tunibus.models import User
from tunibus.roles import is_admin_role
from tunibus.users.schemas import MaintenanceRequest, UserUpdate
from tunibus.users.service import UserAdminService

router = APIRouter()


@router.get("", response_model=List[UserPublic])
def list_users(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return UserAdminService.list_users(db)


@router.post("/{user_id}/maintenance", response_model=UserPublic)
def set_maintenance(
    user_id: str,
    data: MaintenanceRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Put an account in maintenance, or release it with an empty date"""
    user = UserAdminService.set_maintenance(db, user_id, data)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.patch("/{user_id}", response_model=UserPublic)
def update_user(
    user_id: str,
    data: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update a user; allowed for administrators and the user themselves"""
    by_admin = is_admin_role(current_user.role)
    if not by_admin and current_user.id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions")

    try:
        user = UserAdminService.update_user(db, user_id, data, by_admin=by_admin)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.delete("/{user_id}")
def delete_user(user_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    if not UserAdminService.delete_user(db, user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return {"success": True}
