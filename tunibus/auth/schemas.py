from pydantic import BaseModel, EmailStr, Field, validator
from typing import Optional
from datetime import datetime

from tunibus.roles import client_role

class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = None

class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    otp: Optional[str] = None

class UserPublic(BaseModel):
    id: str
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    photo_url: Optional[str] = None
    role: str
    status: str
    preferred_language: Optional[str] = None
    timezone: Optional[str] = None
    notify_email: Optional[bool] = None
    notify_reservations: Optional[bool] = None
    notify_alerts: Optional[bool] = None
    mfa_enabled: Optional[bool] = None
    maintenance_until: Optional[datetime] = None
    maintenance_reason: Optional[str] = None
    deletion_requested_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
    created_at: datetime

    @validator("role", pre=True)
    def expose_role(cls, v):
        return client_role(v)

    class Config:
        from_attributes = True

class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserPublic

class MfaSetupResponse(BaseModel):
    secret: str
    provisioning_uri: str
    qr_code: str

class MfaVerifyRequest(BaseModel):
    code: str = Field(..., min_length=6, max_length=8)
