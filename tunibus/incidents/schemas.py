from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

class IncidentType(str, Enum):
    TRAFFIC = "traffic"
    BREAKDOWN = "breakdown"
    ACCIDENT = "accident"
    EMERGENCY = "emergency"
    OTHER = "other"

class IncidentSeverity(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    CRITICAL = "critical"

class IncidentStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"

class IncidentCreate(BaseModel):
    incident_type: IncidentType
    description: str = Field(..., min_length=1, max_length=2000)
    severity: IncidentSeverity = IncidentSeverity.MINOR
    trip_id: Optional[str] = None

class IncidentStatusUpdate(BaseModel):
    status: IncidentStatus

class Incident(BaseModel):
    id: str
    driver_id: str
    trip_id: Optional[str] = None
    incident_type: IncidentType
    description: Optional[str] = None
    severity: IncidentSeverity
    status: IncidentStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class DriverStats(BaseModel):
    total_trips: int
    upcoming_trips: int
    completed_trips: int
    distance_km: float
    open_incidents: int
