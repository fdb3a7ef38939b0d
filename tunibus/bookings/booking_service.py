import logging
import secrets
import string
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from tunibus.bookings.schemas import ReservationCreate
from tunibus.bookings.ticket_service import TicketService
from tunibus.config import settings
from tunibus.database import utcnow
from tunibus.loyalty.service import LoyaltyService
from tunibus.models import Reservation, Trip, User
from tunibus.notifications.service import NotificationService
from tunibus.roles import is_admin_role

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "TB"
REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
REFERENCE_LENGTH = 8


class TripNotFound(Exception):
    pass


class ReservationService:
    """Seat reservation lifecycle: book, pay, cancel, check in"""

    def __init__(self, db: Session):
        self.db = db
        self.tickets = TicketService(db)

    def _new_reference(self) -> str:
        while True:
            reference = REFERENCE_PREFIX + "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(REFERENCE_LENGTH))
            if not self.db.query(Reservation.id).filter(Reservation.reference == reference).first():
                return reference

    def serialize(self, reservation: Reservation) -> dict:
        """Reservation fields plus trip summary and QR payload"""
        return {
            "id": reservation.id,
            "reference": reservation.reference,
            "client_id": reservation.client_id,
            "trip_id": reservation.trip_id,
            "seat_count": reservation.seat_count,
            "seat_number": reservation.seat_number,
            "status": reservation.status,
            "total_amount": float(reservation.total_amount or 0),
            "booked_at": reservation.booked_at,
            "paid_at": reservation.paid_at,
            "cancelled_at": reservation.cancelled_at,
            "checked_in": bool(reservation.checked_in),
            "checked_in_at": reservation.checked_in_at,
            "checked_in_by": reservation.checked_in_by,
            "trip": reservation.trip,
            "qr": {"text": self.tickets.qr_text(reservation.id)},
        }

    def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        return self.db.query(Reservation).filter(Reservation.id == reservation_id).first()

    def get_by_reference(self, reference: str) -> Optional[Reservation]:
        return self.db.query(Reservation).filter(Reservation.reference == reference.upper()).first()

    def list_for_user(self, user: User) -> List[Reservation]:
        query = self.db.query(Reservation)
        if not is_admin_role(user.role):
            query = query.filter(Reservation.client_id == user.id)
        return query.order_by(Reservation.booked_at.desc()).all()

    @staticmethod
    def can_access(user: User, reservation: Reservation) -> bool:
        return is_admin_role(user.role) or reservation.client_id == user.id

    def create_reservation(self, client: User, request: ReservationCreate) -> Reservation:
        """Book seats on a trip; seats are taken with a guarded update so concurrent bookings cannot oversell"""
        trip = self.db.query(Trip).filter(Trip.id == request.trip_id).first()
        if not trip:
            raise TripNotFound("Trip not found")
        if trip.status in ("cancelled", "completed"):
            raise ValueError(f"Trip is {trip.status} and cannot be booked")

        if request.seat_number is not None:
            if trip.vehicle and request.seat_number > trip.vehicle.capacity:
                raise ValueError("Seat number exceeds vehicle capacity")
            taken = (
                self.db.query(Reservation.id)
                .filter(
                    Reservation.trip_id == trip.id,
                    Reservation.seat_number == request.seat_number,
                    Reservation.status != "cancelled",
                )
                .first()
            )
            if taken:
                raise ValueError(f"Seat {request.seat_number} is already taken")

        updated = (
            self.db.query(Trip)
            .filter(Trip.id == trip.id, Trip.seats_available >= request.seat_count)
            .update({Trip.seats_available: Trip.seats_available - request.seat_count}, synchronize_session=False)
        )
        if not updated:
            self.db.rollback()
            raise ValueError("Not enough seats available")

        total = Decimal(str(trip.price)) * request.seat_count
        reservation = Reservation(
            reference=self._new_reference(),
            client_id=client.id,
            trip_id=trip.id,
            seat_count=request.seat_count,
            seat_number=request.seat_number,
            status="pending_payment",
            total_amount=total,
        )
        self.db.add(reservation)
        self.db.flush()

        if total > 0:
            points = max(1, round(float(total) * settings.LOYALTY_POINTS_PER_DINAR))
            LoyaltyService.credit(
                self.db, client.id, points, "reservation",
                {"reservation_id": reservation.id, "reference": reservation.reference}
            )

        NotificationService.dispatch_to_user(self.db, client.id, {
            "title": "Reservation created",
            "body": f"{trip.origin} → {trip.destination} on {trip.departure_at:%d/%m/%Y %H:%M}, reference {reservation.reference}",
            "category": "reservation",
            "details": {"reservation_id": reservation.id},
        })

        self.db.commit()
        self.db.refresh(reservation)
        logger.info("Reservation %s booked on trip %s (%d seats)", reservation.reference, trip.id, request.seat_count)
        return reservation

    def pay(self, reservation: Reservation) -> Reservation:
        if reservation.status == "paid":
            raise ValueError("Reservation is already paid")
        if reservation.status != "pending_payment":
            raise ValueError(f"Reservation is {reservation.status} and cannot be paid")

        reservation.status = "paid"
        reservation.paid_at = utcnow()
        trip = reservation.trip
        if trip and not trip.workflow_status:
            trip.workflow_status = "waiting_driver_confirmation"

        NotificationService.dispatch_to_user(self.db, reservation.client_id, {
            "title": "Payment confirmed",
            "body": f"Your reservation {reservation.reference} is paid. Have a good trip!",
            "category": "reservation",
            "details": {"reservation_id": reservation.id},
        })
        self.db.commit()
        self.db.refresh(reservation)
        logger.info("Reservation %s paid", reservation.reference)
        return reservation

    def cancel(self, reservation: Reservation) -> Reservation:
        """Cancel and hand the seats back to the trip"""
        if reservation.status == "cancelled":
            raise ValueError("Reservation is already cancelled")
        if reservation.status == "completed":
            raise ValueError("Completed reservations cannot be cancelled")

        reservation.status = "cancelled"
        reservation.cancelled_at = utcnow()
        self.db.query(Trip).filter(Trip.id == reservation.trip_id).update(
            {Trip.seats_available: Trip.seats_available + reservation.seat_count},
            synchronize_session=False
        )
        self.db.commit()
        self.db.refresh(reservation)
        logger.info("Reservation %s cancelled", reservation.reference)
        return reservation

    def check_in(self, reservation: Reservation, staff: User) -> Reservation:
        if reservation.status == "cancelled":
            raise ValueError("Cancelled reservations cannot be checked in")
        if not reservation.checked_in:
            reservation.checked_in = True
            reservation.checked_in_at = utcnow()
            reservation.checked_in_by = staff.id
            self.db.commit()
            self.db.refresh(reservation)
        return reservation
