from datetime import timedelta

import pyotp

from tests.conftest import PASSWORD, auth_headers
from tunibus.database import utcnow
from tunibus.models import User, UserActivity
from tunibus.roles import ADMIN


def _signup(client, email="sami@tunibus.tn", **extra):
    body = {"email": email, "password": "Passw0rd!", "first_name": "Sami", "last_name": "Gharbi"}
    body.update(extra)
    return client.post("/api/auth/signup", json=body)


def test_signup_creates_client_and_returns_token(client):
    r = _signup(client)
    assert r.status_code == 201
    data = r.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["role"] == "CLIENT"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "sami@tunibus.tn"


def test_signup_ignores_requested_role(client, db):
    r = _signup(client, role="ADMIN")
    assert r.status_code == 201
    assert db.query(User).filter(User.email == "sami@tunibus.tn").one().role == "CLIENT"


def test_signup_duplicate_email_is_rejected(client):
    assert _signup(client).status_code == 201
    r = _signup(client, email="SAMI@tunibus.tn")
    assert r.status_code == 400
    assert r.json()["detail"] == "Email already registered"


def test_signup_requires_long_password(client):
    r = _signup(client, password="short")
    assert r.status_code == 422


def test_login_success_and_failure(client, db, client_user):
    ok = client.post("/api/auth/login", json={"email": client_user.email, "password": PASSWORD})
    assert ok.status_code == 200
    assert ok.json()["user"]["id"] == client_user.id
    assert db.query(UserActivity).filter(UserActivity.user_id == client_user.id, UserActivity.action == "login").count() == 1

    bad = client.post("/api/auth/login", json={"email": client_user.email, "password": "wrong-password"})
    assert bad.status_code == 401


def test_token_endpoint_form_login(client, client_user):
    r = client.post("/api/auth/token", data={"username": client_user.email, "password": PASSWORD})
    assert r.status_code == 200
    assert r.json()["token_type"] == "bearer"


def test_me_requires_valid_token(client):
    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_account_in_maintenance_is_locked(client, db, make_user):
    user = make_user(status="maintenance", maintenance_until=utcnow() + timedelta(days=1))
    r = client.get("/api/auth/me", headers=auth_headers(user))
    assert r.status_code == 423

    user.maintenance_until = utcnow() - timedelta(minutes=1)
    db.commit()
    assert client.get("/api/auth/me", headers=auth_headers(user)).status_code == 200


def test_super_admin_is_exposed_as_admin(client, make_user):
    user = make_user("SUPER_ADMIN")
    r = client.get("/api/auth/me", headers=auth_headers(user))
    assert r.json()["role"] == ADMIN


def test_mfa_enrolment_then_login_requires_code(client, client_user):
    headers = auth_headers(client_user)
    setup = client.post("/api/auth/mfa/setup", headers=headers)
    assert setup.status_code == 200
    secret = setup.json()["secret"]
    assert setup.json()["qr_code"].startswith("data:image/png;base64,")

    code = pyotp.TOTP(secret).now()
    verified = client.post("/api/auth/mfa/verify", json={"code": code}, headers=headers)
    assert verified.status_code == 200
    assert verified.json() == {"mfa_enabled": True}

    without_code = client.post("/api/auth/login", json={"email": client_user.email, "password": PASSWORD})
    assert without_code.status_code == 401
    with_code = client.post(
        "/api/auth/login",
        json={"email": client_user.email, "password": PASSWORD, "otp": pyotp.TOTP(secret).now()},
    )
    assert with_code.status_code == 200


def test_logout_records_activity(client, db, client_user):
    r = client.post("/api/auth/logout", headers=auth_headers(client_user))
    assert r.status_code == 200
    assert db.query(UserActivity).filter(UserActivity.action == "logout").count() == 1
