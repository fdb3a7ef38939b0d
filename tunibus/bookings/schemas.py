from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

class ReservationStatus(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

class ReservationCreate(BaseModel):
    trip_id: str
    seat_count: int = Field(1, ge=1, le=10)
    seat_number: Optional[int] = Field(None, ge=1)

class QrPayload(BaseModel):
    text: str

class TripSummary(BaseModel):
    id: str
    origin: str
    destination: str
    departure_at: datetime
    arrival_at: datetime
    price: float
    status: str

    class Config:
        from_attributes = True

class Reservation(BaseModel):
    id: str
    reference: str
    client_id: str
    trip_id: str
    seat_count: int
    seat_number: Optional[int] = None
    status: ReservationStatus
    total_amount: float
    booked_at: datetime
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    checked_in: bool = False
    checked_in_at: Optional[datetime] = None
    checked_in_by: Optional[str] = None
    trip: Optional[TripSummary] = None
    qr: Optional[QrPayload] = None

    class Config:
        from_attributes = True

class TicketValidationResponse(BaseModel):
    valid: bool
    reason: Optional[str] = None
    reservation: Optional[Reservation] = None
    trip: Optional[TripSummary] = None
    already_checked_in: bool = False
