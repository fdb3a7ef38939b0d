from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from tunibus.auth.dependencies import get_current_user, require_admin
from tunibus.database import get_db
from tunibus.models import User
from tunibus.notifications.schemas import (
    Delegation, DelegationCreate, Notification, NotificationAction, Preferences, PreferencesUpdate
)
from tunibus.notifications.service import NotificationService

router = APIRouter()


@router.get("/notifications", response_model=List[Notification])
def list_notifications(
    include_read: bool = Query(False),
    limit: int = Query(25, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Newest first; unread only unless include_read is set"""
    return NotificationService.list_notifications(db, current_user.id, include_read=include_read, limit=limit)


@router.get("/notifications/preferences", response_model=Preferences)
def get_preferences(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return NotificationService.get_preferences(db, current_user.id)


@router.put("/notifications/preferences", response_model=Preferences)
def update_preferences(
    data: PreferencesUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return NotificationService.update_preferences(db, current_user.id, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/notifications/delegations", response_model=Delegation)
def set_delegation(
    data: DelegationCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Forward the caller's notifications to another user until ends_at"""
    try:
        return NotificationService.set_delegation(db, current_user.id, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/notifications/{notification_id}/read", response_model=Notification)
def mark_read(notification_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    notification = NotificationService.mark_read(db, current_user.id, notification_id)
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return notification


@router.post("/notifications/{notification_id}/action", response_model=Notification)
def record_action(
    notification_id: str,
    request: NotificationAction,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Record the action a user took from a notification"""
    try:
        notification = NotificationService.record_action(db, current_user.id, notification_id, request.action)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return notification


@router.post("/admin/notifications/digests/run")
def run_digests(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return {"delivered": NotificationService.run_due_digests(db)}
