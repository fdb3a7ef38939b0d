from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from tunibus.auth.dependencies import get_current_user, require_admin
from tunibus.database import get_db
from tunibus.loyalty.schemas import (
    LoyaltySummary, TransferRequest, TransferResponse, Badge, BadgeGrant, MissionProgressUpdate
)
from tunibus.loyalty.service import LoyaltyService, RecipientNotFound
from tunibus.models import User

router = APIRouter()


@router.get("/loyalty/summary", response_model=LoyaltySummary)
def loyalty_summary(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Balance, recent transactions, missions, badges and tiers"""
    return LoyaltyService.summary(db, current_user.id)


@router.post("/loyalty/transfer", response_model=TransferResponse)
def transfer_points(
    request: TransferRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return LoyaltyService.transfer(db, current_user, request.recipient_email, request.amount, request.note)
    except RecipientNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/loyalty/badges", response_model=List[Badge])
def my_badges(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return LoyaltyService.badges(db, current_user.id)


@router.post("/admin/loyalty/badges", response_model=Badge, status_code=status.HTTP_201_CREATED)
def grant_badge(request: BadgeGrant, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    badge = LoyaltyService.grant_badge(db, request.user_id, request.code, request.label)
    if not badge:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return badge


@router.post("/admin/missions/{mission_id}/progress")
def update_mission_progress(
    mission_id: str,
    request: MissionProgressUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    progress = LoyaltyService.update_mission_progress(db, mission_id, request.user_id, request.delta)
    if not progress:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Mission or user not found")
    return {
        "mission_id": progress.mission_id,
        "user_id": progress.user_id,
        "progress": progress.progress,
        "completed": progress.completed,
    }
