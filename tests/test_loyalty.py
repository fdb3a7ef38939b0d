import pytest

from tests.conftest import auth_headers
from tunibus.loyalty.service import LoyaltyService
from tunibus.models import LoyaltyMission, LoyaltyTransaction, RewardTier


def test_debit_beyond_balance_is_refused(db, client_user):
    LoyaltyService.credit(db, client_user.id, 50, "bonus")
    db.commit()
    with pytest.raises(ValueError, match="Insufficient balance"):
        LoyaltyService.debit(db, client_user.id, 80, "adjustment")
    db.commit()
    assert LoyaltyService.get_balance(db, client_user.id) == 50
    assert db.query(LoyaltyTransaction).count() == 1

    LoyaltyService.debit(db, client_user.id, 50, "adjustment")
    db.commit()
    assert LoyaltyService.get_balance(db, client_user.id) == 0


def test_debit_without_balance_row_is_refused(db, client_user):
    with pytest.raises(ValueError):
        LoyaltyService.debit(db, client_user.id, 1, "adjustment")
    assert LoyaltyService.get_balance(db, client_user.id) == 0


def test_non_positive_amount_is_rejected(db, client_user):
    with pytest.raises(ValueError):
        LoyaltyService.credit(db, client_user.id, 0, "bonus")


def test_summary_with_tiers_and_missions(client, db, client_user):
    db.add_all([
        RewardTier(name="Bronze", min_points=0, perks=["Welcome offer"]),
        RewardTier(name="Silver", min_points=700, perks=["Priority boarding"]),
        LoyaltyMission(title="First trip", points=100, active=True),
        LoyaltyMission(title="Old mission", points=100, active=False),
    ])
    LoyaltyService.credit(db, client_user.id, 750, "bonus")
    db.commit()

    summary = client.get("/api/loyalty/summary", headers=auth_headers(client_user)).json()
    assert summary["balance"] == 750
    assert summary["current_tier"]["name"] == "Silver"
    assert [m["title"] for m in summary["missions"]] == ["First trip"]
    assert summary["transactions"][0]["amount"] == 750


def test_transfer_points(client, db, make_user):
    sender, recipient = make_user(), make_user()
    LoyaltyService.credit(db, sender.id, 100, "bonus")
    db.commit()
    headers = auth_headers(sender)

    r = client.post("/api/loyalty/transfer", headers=headers, json={"recipient_email": recipient.email, "amount": 40})
    assert r.status_code == 200
    assert r.json() == {"balance": 60, "recipient_id": recipient.id, "amount": 40}
    assert LoyaltyService.get_balance(db, recipient.id) == 40

    too_much = client.post("/api/loyalty/transfer", headers=headers, json={"recipient_email": recipient.email, "amount": 500})
    assert too_much.status_code == 400
    assert LoyaltyService.get_balance(db, recipient.id) == 40
    assert LoyaltyService.get_balance(db, sender.id) == 60
    assert db.query(LoyaltyTransaction).filter(LoyaltyTransaction.user_id == recipient.id).count() == 1
    to_self = client.post("/api/loyalty/transfer", headers=headers, json={"recipient_email": sender.email, "amount": 1})
    assert to_self.status_code == 400
    unknown = client.post("/api/loyalty/transfer", headers=headers, json={"recipient_email": "ghost@tunibus.tn", "amount": 1})
    assert unknown.status_code == 404


def test_admin_badges_and_mission_progress(client, db, admin, client_user):
    mission = LoyaltyMission(title="Coastal tour", points=3, active=True)
    db.add(mission)
    db.commit()

    badge = client.post(
        "/api/admin/loyalty/badges",
        json={"user_id": client_user.id, "code": "early-bird", "label": "Early bird"},
        headers=auth_headers(admin),
    )
    assert badge.status_code == 201
    assert [b["code"] for b in client.get("/api/loyalty/badges", headers=auth_headers(client_user)).json()] == ["early-bird"]

    url = f"/api/admin/missions/{mission.id}/progress"
    partial = client.post(url, json={"user_id": client_user.id, "delta": 2}, headers=auth_headers(admin)).json()
    assert partial["progress"] == 2 and partial["completed"] is False
    done = client.post(url, json={"user_id": client_user.id, "delta": 1}, headers=auth_headers(admin)).json()
    assert done["completed"] is True

    missing = client.post("/api/admin/missions/none/progress", json={"user_id": client_user.id, "delta": 1},
                          headers=auth_headers(admin))
    assert missing.status_code == 404
