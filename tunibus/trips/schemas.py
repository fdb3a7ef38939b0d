from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict
from datetime import datetime, date as date_type
from enum import Enum

class TripStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class WorkflowStatus(str, Enum):
    WAITING_DRIVER_CONFIRMATION = "waiting_driver_confirmation"
    CONFIRMED = "confirmed"
    TO_REASSIGN = "to_reassign"
    COMPLETED = "completed"

class TripCategory(str, Enum):
    SCHOOL = "school"
    MEDICAL = "medical"
    PRIVATE = "private"
    DELIVERY = "delivery"
    OTHER = "other"

class TripBase(BaseModel):
    origin: str = Field(..., min_length=1, max_length=120)
    destination: str = Field(..., min_length=1, max_length=120)
    departure_at: datetime
    arrival_at: datetime
    price: float = Field(..., ge=0)
    seats_available: int = Field(..., ge=0)
    distance_km: Optional[float] = Field(None, ge=0)
    driver_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    category: TripCategory = TripCategory.OTHER
    notes: Optional[str] = None

    @validator("arrival_at")
    def arrival_after_departure(cls, v, values):
        departure = values.get("departure_at")
        if departure and v <= departure:
            raise ValueError("arrival_at must be after departure_at")
        return v

class TripCreate(TripBase):
    status: TripStatus = TripStatus.SCHEDULED

class TripUpdate(BaseModel):
    origin: Optional[str] = Field(None, min_length=1, max_length=120)
    destination: Optional[str] = Field(None, min_length=1, max_length=120)
    departure_at: Optional[datetime] = None
    arrival_at: Optional[datetime] = None
    price: Optional[float] = Field(None, ge=0)
    seats_available: Optional[int] = Field(None, ge=0)
    distance_km: Optional[float] = Field(None, ge=0)
    driver_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    status: Optional[TripStatus] = None
    workflow_status: Optional[WorkflowStatus] = None
    category: Optional[TripCategory] = None
    notes: Optional[str] = None

class Trip(BaseModel):
    id: str
    origin: str
    destination: str
    departure_at: datetime
    arrival_at: datetime
    price: float
    seats_available: int
    distance_km: Optional[float] = None
    driver_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    status: str
    workflow_status: Optional[str] = None
    category: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

# Admin dispatch payloads
class AdminTripCreate(BaseModel):
    date: date_type
    start_time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    end_time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    start_location: str = Field(..., min_length=1, max_length=120)
    end_location: str = Field(..., min_length=1, max_length=120)
    category: TripCategory = TripCategory.OTHER
    status: WorkflowStatus = WorkflowStatus.WAITING_DRIVER_CONFIRMATION
    notes: Optional[str] = None
    price: float = Field(0, ge=0)
    seats: int = Field(4, ge=0)
    distance_km: Optional[float] = Field(None, ge=0)
    driver_id: Optional[str] = None
    vehicle_id: Optional[str] = None

class AdminTripUpdate(BaseModel):
    date: Optional[date_type] = None
    start_time: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    end_time: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    start_location: Optional[str] = Field(None, min_length=1, max_length=120)
    end_location: Optional[str] = Field(None, min_length=1, max_length=120)
    category: Optional[TripCategory] = None
    status: Optional[WorkflowStatus] = None
    notes: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    seats: Optional[int] = Field(None, ge=0)
    distance_km: Optional[float] = Field(None, ge=0)
    driver_id: Optional[str] = None
    vehicle_id: Optional[str] = None

# Driver views
class CalendarCounts(BaseModel):
    total: int
    upcoming: int
    completed: int

class DriverCalendar(BaseModel):
    trips: List[Trip]
    by_date: Dict[str, List[Trip]]
    counts: CalendarCounts

# Search
class DetectedQuery(BaseModel):
    origin: Optional[str] = None
    destination: Optional[str] = None
    date: Optional[date_type] = None

class NlpSearchResponse(BaseModel):
    query: str
    detected: DetectedQuery
    results: List[Trip]

class GeoPoint(BaseModel):
    lat: float
    lng: float

class GeoRoute(BaseModel):
    id: str
    origin: str
    origin_coords: GeoPoint
    destination: str
    destination_coords: GeoPoint
    distance_km: float
    average_fill_rate: float
    next_departure: str
    active_buses: int

class TripReservation(BaseModel):
    id: str
    reference: str
    client_id: str
    client_name: Optional[str] = None
    seat_count: int
    seat_number: Optional[int] = None
    status: str
    checked_in: bool = False
    checked_in_at: Optional[datetime] = None
