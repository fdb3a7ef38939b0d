from tests.conftest import auth_headers


def _vehicle(**extra):
    body = {"plate_number": "200 TUN 1234", "make": "Isuzu", "model": "Novo", "capacity": 29}
    body.update(extra)
    return body


def test_admin_manages_vehicles(client, admin, driver):
    headers = auth_headers(admin)
    created = client.post("/api/vehicles", json=_vehicle(driver_id=driver.id), headers=headers)
    assert created.status_code == 201
    vehicle = created.json()
    assert vehicle["status"] == "available"

    updated = client.patch(f"/api/vehicles/{vehicle['id']}", json={"status": "maintenance"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["status"] == "maintenance"

    listed = client.get("/api/vehicles", headers=auth_headers(driver))
    assert [v["plate_number"] for v in listed.json()] == ["200 TUN 1234"]

    assert client.delete(f"/api/vehicles/{vehicle['id']}", headers=headers).status_code == 200
    assert client.get(f"/api/vehicles/{vehicle['id']}", headers=headers).status_code == 404


def test_duplicate_plate_is_rejected(client, admin):
    headers = auth_headers(admin)
    assert client.post("/api/vehicles", json=_vehicle(), headers=headers).status_code == 201
    r = client.post("/api/vehicles", json=_vehicle(), headers=headers)
    assert r.status_code == 400


def test_vehicle_driver_must_be_a_driver(client, admin, client_user):
    r = client.post("/api/vehicles", json=_vehicle(driver_id=client_user.id), headers=auth_headers(admin))
    assert r.status_code == 400


def test_clients_cannot_create_vehicles(client, client_user):
    r = client.post("/api/vehicles", json=_vehicle(), headers=auth_headers(client_user))
    assert r.status_code == 403


def test_invalid_status_is_a_validation_error(client, admin):
    r = client.post("/api/vehicles", json=_vehicle(status="flying"), headers=auth_headers(admin))
    assert r.status_code == 422
