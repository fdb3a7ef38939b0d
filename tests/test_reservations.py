import json

from tests.conftest import auth_headers
from tunibus.bookings.ticket_service import TicketService
from tunibus.loyalty.service import LoyaltyService
from tunibus.models import Notification, Reservation, Trip


def _book(client, user, trip, **extra):
    body = {"trip_id": trip.id, "seat_count": 1}
    body.update(extra)
    return client.post("/api/reservations", json=body, headers=auth_headers(user))


def test_booking_takes_seats_and_credits_points(client, db, client_user, make_trip):
    trip = make_trip(price="12.50", seats=10)
    r = _book(client, client_user, trip, seat_count=2)
    assert r.status_code == 201
    data = r.json()
    assert data["reference"].startswith("TB") and len(data["reference"]) == 10
    assert data["status"] == "pending_payment"
    assert data["total_amount"] == 25.0
    assert data["trip"]["origin"] == "Tunis"
    assert json.loads(data["qr"]["text"])["reservationId"] == data["id"]

    db.refresh(trip)
    assert trip.seats_available == 8
    assert LoyaltyService.get_balance(db, client_user.id) == 25
    assert db.query(Notification).filter(Notification.user_id == client_user.id).count() == 1


def test_overbooking_is_refused(client, db, client_user, make_trip):
    trip = make_trip(seats=1)
    assert _book(client, client_user, trip).status_code == 201
    r = _book(client, client_user, trip)
    assert r.status_code == 400
    assert r.json()["detail"] == "Not enough seats available"
    assert db.query(Trip).filter(Trip.id == trip.id).one().seats_available == 0


def test_booking_unknown_or_closed_trip(client, client_user, make_trip):
    r = client.post("/api/reservations", json={"trip_id": "nope"}, headers=auth_headers(client_user))
    assert r.status_code == 404
    cancelled = make_trip(status="cancelled")
    assert _book(client, client_user, cancelled).status_code == 400


def test_seat_number_must_be_free_and_within_capacity(client, client_user, make_user, vehicle, make_trip):
    trip = make_trip(vehicle_id=vehicle.id)
    assert _book(client, client_user, trip, seat_number=3).status_code == 201
    taken = _book(client, make_user(), trip, seat_number=3)
    assert taken.status_code == 400
    too_far = _book(client, client_user, trip, seat_number=vehicle.capacity + 1)
    assert too_far.status_code == 400


def test_pay_then_cancel_returns_seats(client, db, client_user, make_trip):
    trip = make_trip(seats=5)
    reservation = _book(client, client_user, trip, seat_count=2).json()
    headers = auth_headers(client_user)

    paid = client.post(f"/api/reservations/{reservation['id']}/pay", headers=headers)
    assert paid.status_code == 200
    assert paid.json()["status"] == "paid"
    assert paid.json()["paid_at"] is not None
    db.refresh(trip)
    assert trip.workflow_status == "waiting_driver_confirmation"

    assert client.post(f"/api/reservations/{reservation['id']}/pay", headers=headers).status_code == 400

    cancelled = client.post(f"/api/reservations/{reservation['id']}/cancel", headers=headers)
    assert cancelled.json()["status"] == "cancelled"
    db.refresh(trip)
    assert trip.seats_available == 5

    again = client.post(f"/api/reservations/{reservation['id']}/cancel", headers=headers)
    assert again.status_code == 400


def test_reservations_are_private(client, client_user, make_user, admin, make_trip):
    trip = make_trip()
    reservation = _book(client, client_user, trip).json()
    stranger = make_user()

    assert client.get(f"/api/reservations/{reservation['id']}", headers=auth_headers(stranger)).status_code == 403
    assert client.get("/api/reservations", headers=auth_headers(stranger)).json() == []
    assert client.post(f"/api/reservations/{reservation['id']}/cancel", headers=auth_headers(stranger)).status_code == 403

    everything = client.get("/api/reservations", headers=auth_headers(admin)).json()
    assert [r["id"] for r in everything] == [reservation["id"]]


def test_lookup_by_reference(client, client_user, make_trip):
    reservation = _book(client, client_user, make_trip()).json()
    r = client.get(
        f"/api/reservations/reference/{reservation['reference'].lower()}", headers=auth_headers(client_user)
    )
    assert r.status_code == 200
    assert r.json()["id"] == reservation["id"]


def test_qr_and_pdf_ticket(client, client_user, make_trip):
    reservation = _book(client, client_user, make_trip()).json()
    headers = auth_headers(client_user)

    png = client.get(f"/api/reservations/{reservation['id']}/qr", headers=headers)
    assert png.headers["content-type"] == "image/png"
    assert png.content.startswith(b"\x89PNG")

    pdf = client.get(f"/api/reservations/{reservation['id']}/ticket.pdf", headers=headers)
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")


def test_ticket_validation(client, db, client_user, make_trip):
    reservation = _book(client, client_user, make_trip()).json()
    token = TicketService(db).token_for(reservation["id"])

    ok = client.get("/api/tickets/validate", params={"reservationId": reservation["id"], "token": token})
    assert ok.status_code == 200
    assert ok.json()["valid"] is True
    assert ok.json()["already_checked_in"] is False
    assert ok.json()["trip"]["destination"] == "Sousse"

    forged = client.get("/api/tickets/validate", params={"reservationId": reservation["id"], "token": "0" * 32})
    assert forged.status_code == 403
    assert forged.json() == {"valid": False, "reason": "invalid_token"}

    accented = client.get(
        "/api/tickets/validate", params={"reservationId": reservation["id"], "token": "é" * 32}
    )
    assert accented.status_code == 403
    assert accented.json()["valid"] is False

    assert client.get("/api/tickets/validate", params={"reservationId": "missing", "token": token}).status_code == 404
    assert client.get("/api/tickets/validate", params={"token": token}).status_code == 400

    client.post(f"/api/reservations/{reservation['id']}/cancel", headers=auth_headers(client_user))
    cancelled = client.get("/api/tickets/validate", params={"reservationId": reservation["id"], "token": token})
    assert cancelled.json()["valid"] is False
    assert cancelled.json()["reason"] == "cancelled"


def test_token_depends_on_secret(db):
    assert TicketService(db, secret="a").token_for("r1") != TicketService(db, secret="b").token_for("r1")
    assert len(TicketService(db, secret="a").token_for("r1")) == 32


def test_check_in_is_staff_only_and_idempotent(client, db, client_user, driver, make_trip):
    reservation = _book(client, client_user, make_trip()).json()
    url = f"/api/reservations/{reservation['id']}/checkin"
    assert client.post(url, headers=auth_headers(client_user)).status_code == 403

    first = client.post(url, headers=auth_headers(driver))
    assert first.status_code == 200
    assert first.json()["checked_in"] is True
    assert first.json()["checked_in_by"] == driver.id

    second = client.post(url, headers=auth_headers(driver)).json()
    assert second["checked_in_at"] == first.json()["checked_in_at"]
    assert db.query(Reservation).one().checked_in is True


def test_trip_manifest(client, client_user, driver, make_trip):
    trip = make_trip()
    _book(client, client_user, trip, seat_count=2)
    manifest = client.get(f"/api/trips/{trip.id}/reservations", headers=auth_headers(driver)).json()
    assert len(manifest) == 1
    assert manifest[0]["seat_count"] == 2
    assert manifest[0]["client_name"] == client_user.full_name
