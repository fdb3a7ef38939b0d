from tests.conftest import auth_headers
from tunibus.models import Incident


def _report(client, driver, **overrides):
    payload = {"incident_type": "breakdown", "description": "Engine overheating near Enfidha"}
    payload.update(overrides)
    return client.post("/api/driver/incidents", json=payload, headers=auth_headers(driver))


def test_driver_reports_incident(client, driver, make_trip):
    trip = make_trip(driver_id=driver.id)
    r = _report(client, driver, trip_id=trip.id)
    assert r.status_code == 201
    data = r.json()
    assert data["status"] == "open"
    assert data["severity"] == "minor"
    assert data["driver_id"] == driver.id

    mine = client.get("/api/driver/incidents", headers=auth_headers(driver)).json()
    assert [i["id"] for i in mine] == [data["id"]]


def test_unknown_trip_rejected(client, driver):
    r = _report(client, driver, trip_id="missing")
    assert r.status_code == 400
    assert r.json()["detail"] == "Trip not found"


def test_clients_cannot_report(client, client_user):
    assert _report(client, client_user).status_code == 403


def test_invalid_type_rejected(client, driver):
    assert _report(client, driver, incident_type="meteor").status_code == 422


def test_critical_incident_alerts_admins(client, driver, admin):
    _report(client, driver, incident_type="accident", severity="critical", description="Collision on A1")

    notifications = client.get("/api/notifications", headers=auth_headers(admin)).json()
    assert len(notifications) == 1
    assert notifications[0]["category"] == "alert"
    assert notifications[0]["priority"] == "high"
    assert notifications[0]["title"] == "Critical incident: accident"


def test_minor_incident_does_not_alert(client, driver, admin):
    _report(client, driver)
    assert client.get("/api/notifications", headers=auth_headers(admin)).json() == []


def test_admin_follows_up(client, db, driver, admin):
    incident_id = _report(client, driver).json()["id"]

    r = client.get("/api/admin/incidents", params={"status": "open"}, headers=auth_headers(admin))
    assert [i["id"] for i in r.json()] == [incident_id]

    r = client.patch(
        f"/api/admin/incidents/{incident_id}", json={"status": "resolved"}, headers=auth_headers(admin)
    )
    assert r.status_code == 200
    assert db.get(Incident, incident_id).status == "resolved"
    assert client.get("/api/admin/incidents", params={"status": "open"}, headers=auth_headers(admin)).json() == []

    r = client.patch("/api/admin/incidents/missing", json={"status": "resolved"}, headers=auth_headers(admin))
    assert r.status_code == 404
    r = client.patch(
        f"/api/admin/incidents/{incident_id}", json={"status": "resolved"}, headers=auth_headers(driver)
    )
    assert r.status_code == 403


def test_driver_stats(client, driver, make_trip):
    make_trip(driver_id=driver.id, hours_ahead=-48, status="completed", distance_km=140)
    make_trip(driver_id=driver.id, hours_ahead=-24, status="completed", distance_km=60.5)
    make_trip(driver_id=driver.id, hours_ahead=12)
    make_trip(hours_ahead=12)
    _report(client, driver)

    stats = client.get("/api/driver/stats", headers=auth_headers(driver)).json()
    assert stats == {
        "total_trips": 3,
        "upcoming_trips": 1,
        "completed_trips": 2,
        "distance_km": 200.5,
        "open_incidents": 1,
    }
