from tests.conftest import PASSWORD, auth_headers
from tunibus.models import ProfileVersion


def test_update_profile_keeps_a_version(client, db, client_user):
    headers = auth_headers(client_user)
    r = client.put("/api/profile", json={"first_name": "Leila", "phone": "+216 98 000 000"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["first_name"] == "Leila"

    history = client.get("/api/profile/history", headers=headers).json()
    assert len(history) == 1
    assert history[0]["snapshot"]["first_name"] == "Client"
    assert db.query(ProfileVersion).count() == 1


def test_empty_update_does_not_snapshot(client, db, client_user):
    r = client.put("/api/profile", json={"first_name": None}, headers=auth_headers(client_user))
    assert r.status_code == 200
    assert db.query(ProfileVersion).count() == 0


def test_optional_contact_fields_can_be_cleared(client, db, client_user):
    headers = auth_headers(client_user)
    client.put("/api/profile", json={"address": "12 rue de Marseille", "photo_url": "https://cdn.tunibus.tn/a.png"},
               headers=headers)

    r = client.put("/api/profile", json={"address": None, "first_name": None}, headers=headers)
    assert r.status_code == 200
    assert r.json()["address"] is None
    assert r.json()["photo_url"] == "https://cdn.tunibus.tn/a.png"
    assert r.json()["first_name"] == "Client"


def test_change_password_rules(client, client_user):
    headers = auth_headers(client_user)
    mismatch = client.post("/api/profile/change-password", headers=headers, json={
        "current_password": PASSWORD, "new_password": "NewPass123", "confirm_password": "Other123",
    })
    assert mismatch.status_code == 400

    wrong = client.post("/api/profile/change-password", headers=headers, json={
        "current_password": "not-it", "new_password": "NewPass123", "confirm_password": "NewPass123",
    })
    assert wrong.status_code == 401

    ok = client.post("/api/profile/change-password", headers=headers, json={
        "current_password": PASSWORD, "new_password": "NewPass123", "confirm_password": "NewPass123",
    })
    assert ok.status_code == 200
    login = client.post("/api/auth/login", json={"email": client_user.email, "password": "NewPass123"})
    assert login.status_code == 200


def test_payment_methods_default_handling(client, client_user):
    headers = auth_headers(client_user)
    first = client.post("/api/profile/payment-methods", headers=headers, json={
        "type": "card", "name": "Visa", "last_digits": "4242",
    }).json()
    assert first["is_default"] is True

    second = client.post("/api/profile/payment-methods", headers=headers, json={
        "type": "mobile", "name": "D17", "is_default": True,
    }).json()
    methods = client.get("/api/profile/payment-methods", headers=headers).json()
    defaults = [m["id"] for m in methods if m["is_default"]]
    assert defaults == [second["id"]]

    assert client.delete(f"/api/profile/payment-methods/{second['id']}", headers=headers).status_code == 200
    methods = client.get("/api/profile/payment-methods", headers=headers).json()
    assert len(methods) == 1 and methods[0]["is_default"] is True
    assert client.delete("/api/profile/payment-methods/unknown", headers=headers).status_code == 404


def test_export_and_deletion_request(client, client_user):
    headers = auth_headers(client_user)
    export = client.get("/api/profile/export", headers=headers)
    assert export.status_code == 200
    assert "attachment" in export.headers["content-disposition"]
    assert export.json()["profile"]["email"] == client_user.email

    deletion = client.post("/api/profile/request-deletion", headers=headers)
    assert deletion.status_code == 200
    assert "30 days" in deletion.json()["message"]
