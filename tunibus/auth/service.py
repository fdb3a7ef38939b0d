import base64
import logging
from io import BytesIO
from typing import Optional, Tuple

import pyotp
import qrcode
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tunibus.auth.schemas import SignupRequest, LoginRequest
from tunibus.auth.utils import get_password_hash, verify_password
from tunibus.config import settings
from tunibus.database import utcnow
from tunibus.models import User, UserActivity
from tunibus.roles import CLIENT

logger = logging.getLogger(__name__)


class UserService:
    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email.lower()).first()

    @staticmethod
    def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def log_activity(db: Session, user_id: str, action: str, details: Optional[dict] = None):
        db.add(UserActivity(user_id=user_id, action=action, details=details or {}))

    @staticmethod
    def create_user(db: Session, data: SignupRequest) -> User:
        """Register a client account"""
        if UserService.get_user_by_email(db, data.email):
            raise ValueError("Email already registered")

        db_user = User(
            email=data.email.lower(),
            password=get_password_hash(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            role=CLIENT,
            status="active",
            payment_methods=[],
        )
        try:
            db.add(db_user)
            db.commit()
            db.refresh(db_user)
        except IntegrityError:
            db.rollback()
            raise ValueError("Email already registered")

        logger.info("User %s signed up", db_user.id)
        return db_user

    @staticmethod
    def authenticate(db: Session, data: LoginRequest) -> Optional[User]:
        """Check credentials and the second factor; returns None on any mismatch"""
        user = UserService.get_user_by_email(db, data.email)
        if not user or not verify_password(data.password, user.password):
            return None
        if user.mfa_enabled:
            if not data.otp or not pyotp.TOTP(user.mfa_secret).verify(data.otp, valid_window=1):
                return None

        user.last_login = utcnow()
        UserService.log_activity(db, user.id, "login")
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def logout(db: Session, user: User):
        UserService.log_activity(db, user.id, "logout")
        db.commit()

    @staticmethod
    def setup_mfa(db: Session, user: User) -> Tuple[str, str, str]:
        """Generate a TOTP secret and its provisioning QR code as a data URL"""
        secret = pyotp.random_base32()
        user.mfa_secret = secret
        user.mfa_enabled = False
        db.commit()

        provisioning_uri = pyotp.TOTP(secret).provisioning_uri(
            name=user.email,
            issuer_name=settings.PROJECT_NAME
        )

        qr = qrcode.QRCode(version=1, box_size=10, border=5)
        qr.add_data(provisioning_uri)
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")
        buffer = BytesIO()
        img.save(buffer, format="PNG")
        qr_code = f"data:image/png;base64,{base64.b64encode(buffer.getvalue()).decode()}"

        return secret, provisioning_uri, qr_code

    @staticmethod
    def verify_mfa(db: Session, user: User, code: str) -> bool:
        if not user.mfa_secret:
            raise ValueError("Two-factor setup has not been started")
        if not pyotp.TOTP(user.mfa_secret).verify(code, valid_window=1):
            return False
        user.mfa_enabled = True
        UserService.log_activity(db, user.id, "mfa_enabled")
        db.commit()
        return True
