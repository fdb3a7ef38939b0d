from decimal import Decimal

import pytest

from tests.conftest import auth_headers
from tunibus.models import Incident, Reservation
from tunibus.stats.monitoring_service import SystemMonitoringService, grade


def _reserve(db, client_user, trip, seats, status="paid", amount="25.00"):
    reservation = Reservation(
        reference=f"TB{trip.id[:8].upper()}",
        client_id=client_user.id,
        trip_id=trip.id,
        seat_count=seats,
        status=status,
        total_amount=Decimal(amount),
    )
    db.add(reservation)
    db.commit()
    return reservation


def _open_incidents(db, driver, count, **fields):
    for _ in range(count):
        db.add(Incident(
            driver_id=driver.id,
            incident_type=fields.get("incident_type", "traffic"),
            severity=fields.get("severity", "moderate"),
            description="Slow traffic",
        ))
    db.commit()


@pytest.mark.parametrize("path", ["/api/stats", "/api/admin/dashboard", "/api/search-analytics/top",
                                  "/api/search-analytics/recent", "/api/admin/system/health"])
def test_admin_only(client, client_user, driver, path):
    assert client.get(path).status_code == 401
    assert client.get(path, headers=auth_headers(client_user)).status_code == 403
    assert client.get(path, headers=auth_headers(driver)).status_code == 403


def test_kpis(client, db, admin, client_user, vehicle, make_trip):
    busy = make_trip(vehicle_id=vehicle.id)
    make_trip(vehicle_id=vehicle.id, hours_ahead=48)
    make_trip()
    _reserve(db, client_user, busy, seats=12)

    data = client.get("/api/stats", headers=auth_headers(admin)).json()
    assert data["total_users"] == 2
    assert data["total_vehicles"] == 1
    assert data["total_trips"] == 3
    assert data["snapshot"]["reservations_today"] == 1
    assert data["snapshot"]["revenue_today"] == 25.0

    assert data["kpis"]["fill_rate"] == {"value": 30.0, "trend": -50.0}
    assert data["kpis"]["punctuality"]["value"] == 100.0
    assert data["kpis"]["critical_alerts"] == {"value": 0, "trend": -3}
    buckets = {b["id"]: b["count"] for b in data["occupancy_buckets"]}
    assert buckets == {"low": 1, "medium": 1, "high": 0}
    assert data["vehicle_status_counts"] == [{"status": "available", "count": 1}]
    assert len(data["activity"]) == 7
    assert data["revenue_series"][-1]["revenue"] == 25.0

    alert_ids = [a["id"] for a in data["system_alerts"]]
    assert alert_ids == ["no-critical-incidents", "low-occupancy"]


def test_overbooked_trip_counts_as_full(client, db, admin, client_user, vehicle, make_trip):
    trip = make_trip(vehicle_id=vehicle.id, seats=30)
    _reserve(db, client_user, trip, seats=25)

    data = client.get("/api/stats", headers=auth_headers(admin)).json()
    buckets = {b["id"]: b["count"] for b in data["occupancy_buckets"]}
    assert buckets == {"low": 0, "medium": 0, "high": 1}
    assert data["kpis"]["fill_rate"]["value"] == 100.0


def test_kpis_ignore_unpaid_revenue(client, db, admin, client_user, make_trip):
    _reserve(db, client_user, make_trip(), seats=1, status="pending_payment")
    snapshot = client.get("/api/stats", headers=auth_headers(admin)).json()["snapshot"]
    assert snapshot["reservations_today"] == 1
    assert snapshot["revenue_today"] == 0.0


def test_critical_incidents_raise_system_alert(client, db, admin, driver, make_trip):
    make_trip(status="completed", hours_ahead=-5)
    make_trip(status="completed", hours_ahead=-3)
    _open_incidents(db, driver, 1, severity="critical", incident_type="accident")

    data = client.get("/api/stats", headers=auth_headers(admin)).json()
    assert data["kpis"]["critical_alerts"]["value"] == 1
    assert data["kpis"]["punctuality"]["value"] == 50.0
    assert data["system_alerts"][0]["severity"] == "critical"
    assert data["incident_type_counts"] == [{"type": "accident", "count": 1}]


def test_dashboard_normal_mode(client, admin):
    data = client.get("/api/admin/dashboard", headers=auth_headers(admin)).json()
    assert data["entity"]["id"] == "national"
    assert data["mode"] == "normal"
    assert data["crisis_actions"] == []
    assert [a["type"] for a in data["alerts"]] == ["demand"]
    assert len(data["trends"]) == 7
    assert len(data["multi_entities"]) == 4


def test_dashboard_crisis_mode(client, db, admin, driver):
    _open_incidents(db, driver, 6)

    data = client.get("/api/admin/dashboard", params={"entity": "north"}, headers=auth_headers(admin)).json()
    assert data["entity"]["id"] == "north"
    assert data["mode"] == "crisis"
    assert len(data["crisis_actions"]) == 3
    assert data["snapshot"]["incidents_open"] == 6
    assert data["alerts"][0]["type"] == "incident"
    assert len(data["incidents"]) == 5
    north = next(e for e in data["multi_entities"] if e["id"] == "north")
    assert north["incidents"] == 4


def test_dashboard_unknown_entity_falls_back(client, admin):
    data = client.get("/api/admin/dashboard", params={"entity": "mars"}, headers=auth_headers(admin)).json()
    assert data["entity"]["id"] == "national"


def test_search_analytics(client, admin):
    for origin, destination in [("Tunis", "Sousse"), ("Sfax", None), ("Tunis", "Sousse")]:
        params = {"origin": origin}
        if destination:
            params["destination"] = destination
        client.get("/api/trips", params=params)

    top = client.get("/api/search-analytics/top", headers=auth_headers(admin)).json()
    assert top[0] == {"origin": "Tunis", "destination": "Sousse", "count": 2}
    assert len(top) == 2

    recent = client.get("/api/search-analytics/recent", params={"limit": 2}, headers=auth_headers(admin)).json()
    assert len(recent) == 2
    assert recent[0]["source"] == "web"
    assert recent[0]["result_count"] == 0


def test_grade_thresholds():
    assert grade("cpu_usage", 69.9) == "healthy"
    assert grade("cpu_usage", 70) == "warning"
    assert grade("memory_usage", 95) == "critical"
    assert grade("disk_usage", 90) == "warning"


def test_system_health_healthy(client, admin, monkeypatch):
    monkeypatch.setattr(
        SystemMonitoringService, "_collect_metrics",
        lambda self: {"cpu_usage": 12.0, "memory_usage": 40.0, "disk_usage": 55.0},
    )
    data = client.get("/api/admin/system/health", headers=auth_headers(admin)).json()
    assert data["overall_status"] == "healthy"
    assert data["alerts"] == []
    assert data["components"][0]["component"] == "database"
    assert data["components"][0]["status"] == "healthy"


def test_system_health_critical(client, admin, monkeypatch):
    monkeypatch.setattr(
        SystemMonitoringService, "_collect_metrics",
        lambda self: {"cpu_usage": 93.0, "memory_usage": 82.0, "disk_usage": 10.0},
    )
    data = client.get("/api/admin/system/health", headers=auth_headers(admin)).json()
    assert data["overall_status"] == "critical"
    assert {(a["component"], a["severity"]) for a in data["alerts"]} == {
        ("cpu_usage", "critical"), ("memory_usage", "warning"),
    }
