from datetime import datetime, timedelta, timezone

from tests.conftest import auth_headers
from tunibus.database import utcnow
from tunibus.models import User


def test_list_users_is_admin_only(client, admin, client_user):
    assert client.get("/api/users", headers=auth_headers(client_user)).status_code == 403
    r = client.get("/api/users", headers=auth_headers(admin))
    assert r.status_code == 200
    assert {u["id"] for u in r.json()} == {admin.id, client_user.id}


def test_maintenance_lock_and_release(client, admin, client_user):
    until = (utcnow() + timedelta(days=2)).isoformat()
    r = client.post(
        f"/api/users/{client_user.id}/maintenance",
        json={"until": until, "reason": "Document check"},
        headers=auth_headers(admin),
    )
    assert r.status_code == 200
    assert r.json()["status"] == "maintenance"
    assert client.get("/api/auth/me", headers=auth_headers(client_user)).status_code == 423

    released = client.post(f"/api/users/{client_user.id}/maintenance", json={}, headers=auth_headers(admin))
    assert released.json()["status"] == "active"
    assert client.get("/api/auth/me", headers=auth_headers(client_user)).status_code == 200


def test_maintenance_until_with_offset_is_stored_as_utc(client, db, admin, client_user):
    minus_five = timezone(timedelta(hours=-5))
    until = (datetime.now(timezone.utc) + timedelta(hours=3)).astimezone(minus_five).replace(microsecond=0)
    r = client.post(
        f"/api/users/{client_user.id}/maintenance",
        json={"until": until.isoformat()},
        headers=auth_headers(admin),
    )
    assert r.status_code == 200

    db.refresh(client_user)
    assert client_user.maintenance_until == until.astimezone(timezone.utc).replace(tzinfo=None)
    assert client.get("/api/auth/me", headers=auth_headers(client_user)).status_code == 423


def test_user_cannot_change_own_role(client, client_user):
    r = client.patch(f"/api/users/{client_user.id}", json={"role": "ADMIN"}, headers=auth_headers(client_user))
    assert r.status_code == 403

    ok = client.patch(f"/api/users/{client_user.id}", json={"first_name": "Nour"}, headers=auth_headers(client_user))
    assert ok.status_code == 200
    assert ok.json()["first_name"] == "Nour"


def test_user_cannot_edit_someone_else(client, make_user):
    a, b = make_user(), make_user()
    assert client.patch(f"/api/users/{b.id}", json={"first_name": "X"}, headers=auth_headers(a)).status_code == 403


def test_admin_promotes_to_driver_and_rejects_unknown_role(client, admin, client_user):
    r = client.patch(f"/api/users/{client_user.id}", json={"role": "driver"}, headers=auth_headers(admin))
    assert r.status_code == 200
    assert r.json()["role"] == "DRIVER"

    bad = client.patch(f"/api/users/{client_user.id}", json={"role": "pilot"}, headers=auth_headers(admin))
    assert bad.status_code == 400


def test_delete_user(client, db, admin, client_user):
    assert client.delete(f"/api/users/{client_user.id}", headers=auth_headers(admin)).status_code == 200
    assert db.query(User).filter(User.id == client_user.id).first() is None
    assert client.delete("/api/users/missing", headers=auth_headers(admin)).status_code == 404
