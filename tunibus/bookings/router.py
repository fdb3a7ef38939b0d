from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from tunibus.auth.dependencies import get_current_user, require_staff
from tunibus.bookings.booking_service import ReservationService, TripNotFound
from tunibus.bookings.schemas import Reservation, ReservationCreate, TicketValidationResponse
from tunibus.database import get_db
from tunibus.models import User

router = APIRouter()


def _owned_reservation(service: ReservationService, reservation_id: str, user: User):
    reservation = service.get_reservation(reservation_id)
    if not reservation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found")
    if not service.can_access(user, reservation):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your reservation")
    return reservation


@router.get("/reservations", response_model=List[Reservation])
def list_reservations(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Own reservations, newest first; administrators see all of them"""
    service = ReservationService(db)
    return [service.serialize(r) for r in service.list_for_user(current_user)]


@router.get("/reservations/reference/{reference}", response_model=Reservation)
def get_reservation_by_reference(
    reference: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Look a reservation up by its booking reference (PNR)"""
    service = ReservationService(db)
    reservation = service.get_by_reference(reference)
    if not reservation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found")
    if not service.can_access(current_user, reservation):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your reservation")
    return service.serialize(reservation)


@router.get("/reservations/{reservation_id}", response_model=Reservation)
def get_reservation(reservation_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    service = ReservationService(db)
    return service.serialize(_owned_reservation(service, reservation_id, current_user))


@router.post("/reservations", response_model=Reservation, status_code=status.HTTP_201_CREATED)
def create_reservation(
    request: ReservationCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Book seats on a trip"""
    service = ReservationService(db)
    try:
        reservation = service.create_reservation(current_user, request)
    except TripNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return service.serialize(reservation)


@router.post("/reservations/{reservation_id}/pay", response_model=Reservation)
def pay_reservation(reservation_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    service = ReservationService(db)
    reservation = _owned_reservation(service, reservation_id, current_user)
    try:
        return service.serialize(service.pay(reservation))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/reservations/{reservation_id}/cancel", response_model=Reservation)
def cancel_reservation(reservation_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    service = ReservationService(db)
    reservation = _owned_reservation(service, reservation_id, current_user)
    try:
        return service.serialize(service.cancel(reservation))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/reservations/{reservation_id}/checkin", response_model=Reservation)
def check_in_reservation(reservation_id: str, staff: User = Depends(require_staff), db: Session = Depends(get_db)):
    """Mark a passenger as boarded"""
    service = ReservationService(db)
    reservation = service.get_reservation(reservation_id)
    if not reservation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found")
    try:
        return service.serialize(service.check_in(reservation, staff))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/reservations/{reservation_id}/qr")
def reservation_qr_code(reservation_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """QR code image of the signed ticket payload"""
    service = ReservationService(db)
    reservation = _owned_reservation(service, reservation_id, current_user)
    return Response(content=service.tickets.qr_png(reservation), media_type="image/png")


@router.get("/reservations/{reservation_id}/ticket.pdf")
def reservation_pdf_ticket(reservation_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    service = ReservationService(db)
    reservation = _owned_reservation(service, reservation_id, current_user)
    return Response(
        content=service.tickets.pdf_ticket(reservation),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="ticket-{reservation.reference}.pdf"'}
    )


@router.get("/tickets/validate", response_model=TicketValidationResponse)
def validate_ticket(
    reservation_id: Optional[str] = Query(None, alias="reservationId"),
    token: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """Scanner check of a QR payload"""
    if not reservation_id or not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="reservationId and token are required")

    service = ReservationService(db)
    result = service.tickets.validate(reservation_id, token)

    if result["status"] == "not_found":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found")
    if result["status"] == "invalid":
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"valid": False, "reason": "invalid_token"})

    reservation = result["reservation"]
    return {
        "valid": result["status"] == "ok",
        "reason": None if result["status"] == "ok" else result["status"],
        "reservation": service.serialize(reservation),
        "trip": reservation.trip,
        "already_checked_in": bool(reservation.checked_in),
    }
