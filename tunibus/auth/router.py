from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from tunibus.auth.dependencies import get_current_user
from tunibus.auth.schemas import (
    SignupRequest, LoginRequest, AuthResponse, UserPublic, MfaSetupResponse, MfaVerifyRequest
)
from tunibus.auth.service import UserService
from tunibus.auth.utils import create_access_token
from tunibus.database import get_db
from tunibus.models import User

router = APIRouter()


def _auth_response(user: User) -> AuthResponse:
    access_token = create_access_token(data={"sub": user.id, "role": user.role})
    return AuthResponse(access_token=access_token, token_type="bearer", user=UserPublic.model_validate(user))


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(data: SignupRequest, db: Session = Depends(get_db)):
    """Register a new client account"""
    try:
        user = UserService.create_user(db, data)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    return _auth_response(user)


@router.post("/login", response_model=AuthResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    """Login with email, password and, when enabled, a TOTP code"""
    user = UserService.authenticate(db, data)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _auth_response(user)


@router.post("/token")
def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """OAuth2 password flow used by the interactive docs"""
    user = UserService.authenticate(db, LoginRequest(email=form_data.username, password=form_data.password))
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return {"access_token": create_access_token(data={"sub": user.id, "role": user.role}), "token_type": "bearer"}


@router.post("/logout")
def logout(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    UserService.logout(db, current_user)
    return {"success": True}


@router.get("/me", response_model=UserPublic)
def read_users_me(current_user: User = Depends(get_current_user)):
    """Get the authenticated user"""
    return current_user


@router.post("/mfa/setup", response_model=MfaSetupResponse)
def setup_mfa(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Start two-factor enrolment"""
    secret, uri, qr_code = UserService.setup_mfa(db, current_user)
    return MfaSetupResponse(secret=secret, provisioning_uri=uri, qr_code=qr_code)


@router.post("/mfa/verify")
def verify_mfa(
    request: MfaVerifyRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Confirm two-factor enrolment with a first code"""
    try:
        verified = UserService.verify_mfa(db, current_user, request.code)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not verified:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid verification code")
    return {"mfa_enabled": True}
