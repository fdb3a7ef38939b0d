from pydantic import BaseModel, Field, validator
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum

class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"

class Notification(BaseModel):
    id: str
    title: str
    body: Optional[str] = None
    category: str
    priority: str
    read: bool
    read_at: Optional[datetime] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True

class QuietHours(BaseModel):
    start: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    end: str = Field(..., pattern=r"^\d{2}:\d{2}$")

    @validator("start", "end")
    def valid_clock_time(cls, v):
        hours, minutes = (int(part) for part in v.split(":"))
        if hours > 23 or minutes > 59:
            raise ValueError("Time must be between 00:00 and 23:59")
        return v

class Preferences(BaseModel):
    channels: Dict[str, bool]
    priority_threshold: Priority
    quiet_mode: bool
    quiet_hours: Optional[QuietHours] = None
    vacation_mode: bool
    vacation_delegate_user_id: Optional[str] = None

    class Config:
        from_attributes = True

class PreferencesUpdate(BaseModel):
    channels: Optional[Dict[str, bool]] = None
    priority_threshold: Optional[Priority] = None
    quiet_mode: Optional[bool] = None
    quiet_hours: Optional[QuietHours] = None
    vacation_mode: Optional[bool] = None
    vacation_delegate_user_id: Optional[str] = None

class NotificationAction(BaseModel):
    action: str = Field(..., min_length=1, max_length=50)

class DelegationCreate(BaseModel):
    delegate_user_id: str
    ends_at: Optional[datetime] = None
    active: bool = True

class Delegation(BaseModel):
    id: str
    user_id: str
    delegate_user_id: str
    starts_at: datetime
    ends_at: Optional[datetime] = None
    active: bool

    class Config:
        from_attributes = True
