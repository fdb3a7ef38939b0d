from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum

class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=255)
    photo_url: Optional[str] = Field(None, max_length=500)
    preferred_language: Optional[str] = Field(None, max_length=10)
    timezone: Optional[str] = Field(None, max_length=50)
    notify_email: Optional[bool] = None
    notify_reservations: Optional[bool] = None
    notify_alerts: Optional[bool] = None

class ChangePasswordRequest(BaseModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None

class PaymentMethodType(str, Enum):
    CARD = "card"
    MOBILE = "mobile"
    PAYPAL = "paypal"
    CASH = "cash"

class PaymentMethodCreate(BaseModel):
    type: PaymentMethodType
    name: str = Field(..., min_length=1, max_length=100)
    last_digits: Optional[str] = Field(None, pattern=r"^\d{4}$")
    is_default: bool = False

class PaymentMethod(BaseModel):
    id: str
    type: str
    name: str
    last_digits: Optional[str] = None
    is_default: bool = False
    added_at: Optional[str] = None

class ProfileVersionOut(BaseModel):
    id: str
    snapshot: Dict[str, Any]
    created_at: datetime

    class Config:
        from_attributes = True

class DeletionRequestResponse(BaseModel):
    message: str
    deletion_requested_at: datetime

class ProfileExport(BaseModel):
    export_date: datetime
    profile: Dict[str, Any]
    payment_methods: List[PaymentMethod] = []
    reservations: List[Dict[str, Any]] = []
