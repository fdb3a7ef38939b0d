from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

class LoyaltyTransaction(BaseModel):
    id: str
    type: str
    amount: int
    source: str
    details: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True

class MissionProgress(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    points: int
    progress: int = 0
    completed: bool = False
    ends_at: Optional[datetime] = None

class RewardTier(BaseModel):
    id: str
    name: str
    min_points: int
    perks: Optional[List[str]] = None

    class Config:
        from_attributes = True

class Badge(BaseModel):
    id: str
    code: str
    label: str
    awarded_at: datetime

    class Config:
        from_attributes = True

class LoyaltySummary(BaseModel):
    balance: int
    transactions: List[LoyaltyTransaction]
    missions: List[MissionProgress]
    badges: List[Badge]
    tiers: List[RewardTier]
    current_tier: Optional[RewardTier] = None

class TransferRequest(BaseModel):
    recipient_email: EmailStr
    amount: int = Field(..., gt=0)
    note: Optional[str] = Field(None, max_length=200)

class TransferResponse(BaseModel):
    balance: int
    recipient_id: str
    amount: int

class BadgeGrant(BaseModel):
    user_id: str
    code: str = Field(..., min_length=1, max_length=50)
    label: str = Field(..., min_length=1, max_length=200)

class MissionProgressUpdate(BaseModel):
    user_id: str
    delta: int
