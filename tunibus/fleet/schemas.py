from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

class VehicleStatus(str, Enum):
    AVAILABLE = "available"
    ON_ROUTE = "on_route"
    MAINTENANCE = "maintenance"

class VehicleBase(BaseModel):
    plate_number: str = Field(..., min_length=1, max_length=30)
    make: Optional[str] = Field(None, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    capacity: int = Field(..., gt=0, le=120)
    status: VehicleStatus = VehicleStatus.AVAILABLE
    driver_id: Optional[str] = None

class VehicleCreate(VehicleBase):
    pass

class VehicleUpdate(BaseModel):
    plate_number: Optional[str] = Field(None, min_length=1, max_length=30)
    make: Optional[str] = Field(None, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    capacity: Optional[int] = Field(None, gt=0, le=120)
    status: Optional[VehicleStatus] = None
    driver_id: Optional[str] = None

class Vehicle(VehicleBase):
    id: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
