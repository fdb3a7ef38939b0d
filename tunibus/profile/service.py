import logging
import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from tunibus.auth.service import UserService
from tunibus.auth.utils import get_password_hash, verify_password
from tunibus.database import utcnow
from tunibus.models import User, ProfileVersion, Reservation
from tunibus.profile.schemas import ProfileUpdate, ChangePasswordRequest, PaymentMethodCreate

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "first_name", "last_name", "phone", "address", "photo_url",
    "preferred_language", "timezone", "notify_email", "notify_reservations", "notify_alerts",
)

# Optional contact details a user may blank out by sending null
CLEARABLE_FIELDS = {"phone", "address", "photo_url"}

MIN_PASSWORD_LENGTH = 8
DELETION_GRACE_DAYS = 30


def profile_snapshot(user: User) -> dict:
    snapshot = {field: getattr(user, field) for field in PROFILE_FIELDS}
    snapshot["email"] = user.email
    return snapshot


class ProfileService:
    """Self-service profile management for the authenticated user"""

    @staticmethod
    def update_profile(db: Session, user: User, data: ProfileUpdate) -> User:
        changes = {
            k: v for k, v in data.model_dump(exclude_unset=True).items()
            if v is not None or k in CLEARABLE_FIELDS
        }
        if not changes:
            return user

        db.add(ProfileVersion(user_id=user.id, snapshot=profile_snapshot(user)))
        for field, value in changes.items():
            setattr(user, field, value)
        UserService.log_activity(db, user.id, "profile_update", {"fields": sorted(changes)})
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def change_password(db: Session, user: User, data: ChangePasswordRequest) -> bool:
        """Returns False when the current password does not match"""
        if not data.current_password or not data.new_password or not data.confirm_password:
            raise ValueError("All password fields are required")
        if data.new_password != data.confirm_password:
            raise ValueError("New password and confirmation do not match")
        if len(data.new_password) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if not verify_password(data.current_password, user.password):
            return False

        user.password = get_password_hash(data.new_password)
        UserService.log_activity(db, user.id, "password_change")
        db.commit()
        logger.info("Password changed for user %s", user.id)
        return True

    @staticmethod
    def list_payment_methods(user: User) -> List[dict]:
        return list(user.payment_methods or [])

    @staticmethod
    def add_payment_method(db: Session, user: User, data: PaymentMethodCreate) -> dict:
        methods = [dict(m) for m in (user.payment_methods or [])]
        method = {
            "id": str(uuid.uuid4()),
            "type": data.type.value,
            "name": data.name,
            "last_digits": data.last_digits,
            "is_default": data.is_default or not methods,
            "added_at": utcnow().isoformat(),
        }
        if method["is_default"]:
            for m in methods:
                m["is_default"] = False
        methods.append(method)

        # JSON columns only persist on reassignment
        user.payment_methods = methods
        db.commit()
        return method

    @staticmethod
    def delete_payment_method(db: Session, user: User, method_id: str) -> bool:
        methods = [dict(m) for m in (user.payment_methods or [])]
        remaining = [m for m in methods if m.get("id") != method_id]
        if len(remaining) == len(methods):
            return False
        if remaining and not any(m.get("is_default") for m in remaining):
            remaining[0]["is_default"] = True
        user.payment_methods = remaining
        db.commit()
        return True

    @staticmethod
    def export_data(db: Session, user: User) -> dict:
        """Everything held about the user, for a personal data export"""
        reservations = db.query(Reservation).filter(Reservation.client_id == user.id).all()
        profile = profile_snapshot(user)
        profile.update({
            "id": user.id,
            "role": user.role,
            "status": user.status,
            "created_at": user.created_at.isoformat() if user.created_at else None,
            "last_login": user.last_login.isoformat() if user.last_login else None,
        })
        return {
            "export_date": utcnow(),
            "profile": profile,
            "payment_methods": ProfileService.list_payment_methods(user),
            "reservations": [
                {
                    "reference": r.reference,
                    "trip_id": r.trip_id,
                    "seat_count": r.seat_count,
                    "status": r.status,
                    "total_amount": float(r.total_amount or 0),
                    "booked_at": r.booked_at.isoformat() if r.booked_at else None,
                }
                for r in reservations
            ],
        }

    @staticmethod
    def request_deletion(db: Session, user: User) -> User:
        user.deletion_requested_at = utcnow()
        UserService.log_activity(db, user.id, "deletion_requested")
        db.commit()
        db.refresh(user)
        logger.info("Account deletion requested for user %s", user.id)
        return user

    @staticmethod
    def history(db: Session, user: User, limit: int = 10) -> List[ProfileVersion]:
        return (
            db.query(ProfileVersion)
            .filter(ProfileVersion.user_id == user.id)
            .order_by(ProfileVersion.created_at.desc())
            .limit(limit)
            .all()
        )
