import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tunibus.auth.utils import get_password_hash
from tunibus.database import to_naive_utc
from tunibus.models import User
from tunibus.roles import ALL_ROLES, normalize_role
from tunibus.users.schemas import MaintenanceRequest, UserUpdate

logger = logging.getLogger(__name__)

ADMIN_ONLY_FIELDS = {"role", "status"}
USER_STATUSES = ("active", "maintenance", "suspended")


class UserAdminService:
    @staticmethod
    def list_users(db: Session) -> List[User]:
        return db.query(User).order_by(User.created_at.desc()).all()

    @staticmethod
    def set_maintenance(db: Session, user_id: str, data: MaintenanceRequest) -> Optional[User]:
        """Lock an account until a date, or unlock it when no date is given"""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            return None

        if data.until is None:
            user.status = "active"
            user.maintenance_until = None
            user.maintenance_reason = None
        else:
            user.status = "maintenance"
            user.maintenance_until = to_naive_utc(data.until)
            user.maintenance_reason = data.reason
        db.commit()
        db.refresh(user)
        logger.info("User %s maintenance set to %s", user.id, user.maintenance_until)
        return user

    @staticmethod
    def update_user(db: Session, user_id: str, data: UserUpdate, by_admin: bool) -> Optional[User]:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            return None

        update_data = data.model_dump(exclude_unset=True)
        if not by_admin and ADMIN_ONLY_FIELDS & update_data.keys():
            raise PermissionError("Only administrators can change role or status")

        if "password" in update_data:
            update_data["password"] = get_password_hash(update_data["password"])
        if "email" in update_data and update_data["email"]:
            update_data["email"] = update_data["email"].lower()
        if "role" in update_data:
            if str(update_data["role"]).upper() not in ALL_ROLES:
                raise ValueError(f"Unknown role: {update_data['role']}")
            update_data["role"] = normalize_role(update_data["role"])
        if "status" in update_data and update_data["status"] not in USER_STATUSES:
            raise ValueError(f"Unknown status: {update_data['status']}")

        for field, value in update_data.items():
            setattr(user, field, value)

        try:
            db.commit()
            db.refresh(user)
        except IntegrityError:
            db.rollback()
            raise ValueError("Email already exists")
        return user

    @staticmethod
    def delete_user(db: Session, user_id: str) -> bool:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            return False
        db.delete(user)
        db.commit()
        logger.info("User %s deleted", user_id)
        return True
