from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime

class MaintenanceRequest(BaseModel):
    until: Optional[datetime] = None
    reason: Optional[str] = Field(None, max_length=255)

class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8)
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = None
    address: Optional[str] = None
    role: Optional[str] = None
    status: Optional[str] = None
