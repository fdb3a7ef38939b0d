"""
Booking & Ticketing Module

Seat reservations on trips and their signed QR tickets. It includes:

- Reservation lifecycle (book, pay, cancel, check in) with guarded seat counts
- Booking references (PNR) for lookup by passengers and staff
- Loyalty credit and notification on every booking
- QR ticket payloads signed with HMAC-SHA256, rendered as PNG or printable PDF
- Scanner validation of QR payloads

Key Components:
- booking_service.py: ReservationService
- ticket_service.py: TicketService for signing, rendering and validating tickets
- router.py: FastAPI endpoints for reservations and ticket validation
- schemas.py: Pydantic models for reservations and validation results
"""

from .router import router
from .booking_service import ReservationService, TripNotFound
from .ticket_service import TicketService
from .schemas import Reservation, ReservationCreate, ReservationStatus, TicketValidationResponse

__all__ = [
    "router",
    "ReservationService",
    "TripNotFound",
    "TicketService",
    "Reservation",
    "ReservationCreate",
    "ReservationStatus",
    "TicketValidationResponse",
]
