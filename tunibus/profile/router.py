from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from tunibus.auth.dependencies import get_current_user
from tunibus.auth.schemas import UserPublic
from tunibus.database import get_db
from tunibus.models import User
from tunibus.profile.schemas import (
    ProfileUpdate, ChangePasswordRequest, PaymentMethodCreate, PaymentMethod,
    ProfileVersionOut, DeletionRequestResponse, ProfileExport
)
from tunibus.profile.service import ProfileService, DELETION_GRACE_DAYS

router = APIRouter()


@router.get("", response_model=UserPublic)
def get_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("", response_model=UserPublic)
def update_profile(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update whitelisted profile fields"""
    return ProfileService.update_profile(db, current_user, data)


@router.post("/change-password")
def change_password(
    data: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        changed = ProfileService.change_password(db, current_user, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not changed:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Current password is incorrect")
    return {"message": "Password updated"}


@router.get("/payment-methods", response_model=List[PaymentMethod])
def list_payment_methods(current_user: User = Depends(get_current_user)):
    return ProfileService.list_payment_methods(current_user)


@router.post("/payment-methods", response_model=PaymentMethod, status_code=status.HTTP_201_CREATED)
def add_payment_method(
    data: PaymentMethodCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return ProfileService.add_payment_method(db, current_user, data)


@router.delete("/payment-methods/{method_id}")
def delete_payment_method(
    method_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if not ProfileService.delete_payment_method(db, current_user, method_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment method not found")
    return {"success": True}


@router.get("/export", response_model=ProfileExport)
def export_data(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Download every piece of data held about the account"""
    payload = jsonable_encoder(ProfileService.export_data(db, current_user))
    return JSONResponse(
        content=payload,
        headers={"Content-Disposition": f'attachment; filename="tunibus-export-{current_user.id}.json"'}
    )


@router.post("/request-deletion", response_model=DeletionRequestResponse)
def request_deletion(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    user = ProfileService.request_deletion(db, current_user)
    return DeletionRequestResponse(
        message=f"Your account will be deleted after {DELETION_GRACE_DAYS} days",
        deletion_requested_at=user.deletion_requested_at
    )


@router.get("/history", response_model=List[ProfileVersionOut])
def profile_history(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Last ten snapshots taken before profile updates"""
    return ProfileService.history(db, current_user)
