from datetime import date, timedelta

from tests.conftest import auth_headers
from tunibus.database import utcnow
from tunibus.models import SearchLog, Trip


def test_public_search_filters_and_logs(client, db, make_trip):
    make_trip("Tunis", "Sousse")
    make_trip("Sfax", "Djerba")

    r = client.get("/api/trips", params={"origin": "tun", "destination": "SOUSSE"})
    assert r.status_code == 200
    assert [(t["origin"], t["destination"]) for t in r.json()] == [("Tunis", "Sousse")]

    log = db.query(SearchLog).one()
    assert log.origin == "tun"
    assert log.result_count == 1
    assert log.user_id is None


def test_search_by_day(client, make_trip):
    tomorrow = make_trip(hours_ahead=24)
    make_trip(hours_ahead=24 * 3)
    day = tomorrow.departure_at.date().isoformat()
    r = client.get("/api/trips", params={"date": day})
    assert [t["id"] for t in r.json()] == [tomorrow.id]


def test_unfiltered_search_lists_newest_first(client, make_trip):
    early = make_trip(hours_ahead=5)
    late = make_trip(hours_ahead=50)
    assert [t["id"] for t in client.get("/api/trips").json()] == [late.id, early.id]


def test_search_logs_the_signed_in_user(client, db, client_user, make_trip):
    make_trip()
    client.get("/api/trips", params={"origin": "Tunis"}, headers=auth_headers(client_user))
    assert db.query(SearchLog).one().user_id == client_user.id


def test_nlp_search(client, db, make_trip):
    trip = make_trip("Tunis", "Sousse", departure_at=utcnow().replace(hour=10, minute=0) + timedelta(days=1))
    r = client.get("/api/search/nlp", params={"q": "de Tunis à Sousse demain"})
    assert r.status_code == 200
    data = r.json()
    assert data["detected"]["origin"] == "Tunis"
    assert data["detected"]["destination"] == "Sousse"
    assert [t["id"] for t in data["results"]] == [trip.id]
    assert db.query(SearchLog).one().source == "nlp"


def test_nlp_search_requires_query(client):
    assert client.get("/api/search/nlp", params={"q": "  "}).status_code == 400


def test_geo_routes(client):
    routes = client.get("/api/geo/routes").json()
    assert len(routes) == 5
    assert routes[0]["origin"] == "Tunis"


def test_trip_crud_permissions(client, admin, client_user):
    departure = utcnow() + timedelta(days=2)
    body = {
        "origin": "Tunis",
        "destination": "Bizerte",
        "departure_at": departure.isoformat(),
        "arrival_at": (departure + timedelta(hours=1)).isoformat(),
        "price": 8.5,
        "seats_available": 12,
    }
    assert client.post("/api/trips", json=body, headers=auth_headers(client_user)).status_code == 403

    created = client.post("/api/trips", json=body, headers=auth_headers(admin))
    assert created.status_code == 201
    trip_id = created.json()["id"]
    assert client.get(f"/api/trips/{trip_id}").json()["price"] == 8.5

    assert client.delete(f"/api/trips/{trip_id}", headers=auth_headers(admin)).status_code == 200
    assert client.get(f"/api/trips/{trip_id}").status_code == 404


def test_trip_arrival_must_follow_departure(client, admin):
    departure = utcnow() + timedelta(days=2)
    body = {
        "origin": "Tunis",
        "destination": "Bizerte",
        "departure_at": departure.isoformat(),
        "arrival_at": (departure - timedelta(hours=1)).isoformat(),
        "price": 8.5,
        "seats_available": 12,
    }
    assert client.post("/api/trips", json=body, headers=auth_headers(admin)).status_code == 422


def test_driver_can_only_move_status(client, driver, make_trip):
    trip = make_trip()
    headers = auth_headers(driver)

    r = client.patch(f"/api/trips/{trip.id}", json={"price": 1}, headers=headers)
    assert r.status_code == 403

    confirmed = client.patch(f"/api/trips/{trip.id}", json={"workflow_status": "confirmed"}, headers=headers)
    assert confirmed.status_code == 200
    data = confirmed.json()
    assert data["status"] == "in_progress"
    assert data["driver_id"] == driver.id


def test_driver_cannot_touch_another_drivers_trip(client, make_user, make_trip):
    owner, other = make_user("DRIVER"), make_user("DRIVER")
    trip = make_trip(driver_id=owner.id)
    r = client.patch(f"/api/trips/{trip.id}", json={"status": "completed"}, headers=auth_headers(other))
    assert r.status_code == 403


def test_reassign_clears_driver(client, admin, driver, make_trip):
    trip = make_trip(driver_id=driver.id)
    r = client.patch(f"/api/trips/{trip.id}", json={"workflow_status": "to_reassign"}, headers=auth_headers(admin))
    assert r.json()["driver_id"] is None
    assert r.json()["status"] == "scheduled"


def test_admin_dispatch_trip_overnight(client, admin, driver):
    day = (utcnow() + timedelta(days=3)).date()
    r = client.post("/api/admin/trips", headers=auth_headers(admin), json={
        "date": day.isoformat(),
        "start_time": "22:30",
        "end_time": "01:15",
        "start_location": "Tunis",
        "end_location": "Gabès",
        "driver_id": driver.id,
        "price": 25,
        "seats": 8,
    })
    assert r.status_code == 201
    data = r.json()
    assert data["departure_at"].startswith(day.isoformat())
    assert data["arrival_at"].startswith((day + timedelta(days=1)).isoformat())
    assert data["workflow_status"] == "waiting_driver_confirmation"
    assert data["status"] == "scheduled"

    listed = client.get("/api/admin/trips", params={"driver_id": driver.id}, headers=auth_headers(admin))
    assert [t["id"] for t in listed.json()] == [data["id"]]

    updated = client.patch(
        f"/api/admin/trips/{data['id']}", json={"status": "completed"}, headers=auth_headers(admin)
    )
    assert updated.json()["status"] == "completed"


def test_admin_dispatch_rejects_bad_time(client, admin):
    r = client.post("/api/admin/trips", headers=auth_headers(admin), json={
        "date": date.today().isoformat(),
        "start_time": "25:00",
        "end_time": "26:00",
        "start_location": "Tunis",
        "end_location": "Sousse",
    })
    assert r.status_code == 400


def test_driver_trips_and_calendar(client, db, driver, make_user, make_trip):
    other = make_user("DRIVER")
    mine = make_trip(driver_id=driver.id)
    open_trip = make_trip()
    make_trip(driver_id=other.id)
    make_trip(status="cancelled")
    done = make_trip(driver_id=driver.id, hours_ahead=-48, status="completed")

    trips = client.get("/api/driver/trips", headers=auth_headers(driver)).json()
    assert {t["id"] for t in trips} == {mine.id, open_trip.id, done.id}

    calendar = client.get("/api/driver/calendar", headers=auth_headers(driver)).json()
    assert calendar["counts"] == {"total": 2, "upcoming": 1, "completed": 1}
    assert mine.departure_at.date().isoformat() in calendar["by_date"]


def test_driver_views_require_driver_role(client, client_user):
    assert client.get("/api/driver/trips", headers=auth_headers(client_user)).status_code == 403
