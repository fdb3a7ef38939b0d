from datetime import datetime, timedelta
from types import SimpleNamespace

from tests.conftest import auth_headers
from tunibus.assistant.engine import (
    analyze_travel, build_recommendations, loyalty_tier, parse_languages
)

NOW = datetime(2026, 10, 19, 8, 0)


def _pair(origin, destination, departure, booked_days_before=3):
    trip = SimpleNamespace(
        id=f"{origin}-{departure:%m%d}", origin=origin, destination=destination,
        departure_at=departure, status="scheduled",
    )
    reservation = SimpleNamespace(booked_at=departure - timedelta(days=booked_days_before), status="paid")
    return reservation, trip


def _commuter_history():
    pairs = [_pair("Tunis", "Sousse", NOW - timedelta(days=7 * i)) for i in range(1, 6)]
    pairs.append(_pair("Tunis", "Sousse", NOW + timedelta(hours=20)))
    return pairs


def test_loyalty_tiers():
    assert loyalty_tier(0)["tier"] == "Bronze"
    assert loyalty_tier(699) == {"tier": "Bronze", "next_threshold": 700, "delta": 1}
    assert loyalty_tier(700)["tier"] == "Silver"
    assert loyalty_tier(1500)["tier"] == "Gold"
    assert loyalty_tier(2600) == {"tier": "Platinum", "next_threshold": None, "delta": None}


def test_parse_languages():
    assert parse_languages(None) == ["fr-FR", "ar-TN", "en-GB"]
    assert parse_languages("de-DE,en-GB;q=0.8") == ["de-DE", "en-GB", "fr-FR", "ar-TN"]
    assert len(parse_languages("a,b,c,d,e")) == 4


def test_analyze_travel_habits():
    analytics = analyze_travel(_commuter_history(), NOW)
    assert len(analytics.upcoming) == 1
    assert len(analytics.past) == 5
    assert analytics.favorite_routes[0].label == "Tunis → Sousse"
    assert analytics.route_dominance == 1.0
    assert analytics.booking_window_avg == 3.0
    assert round(analytics.travel_rhythm_days, 1) == round((7 * 4 + 20 / 24 + 7) / 5, 1)


def test_commuter_recommendations():
    result = build_recommendations(
        pairs=_commuter_history(),
        search_history=[],
        loyalty_balance=1400,
        now=NOW,
        user_agent="Mozilla/5.0 (iPhone; CPU iPhone OS 17_0)",
        accept_language="fr-FR",
    )
    profile = result["behavior_profile"]
    assert profile["archetype"] == "Structured commuter"
    assert profile["predicted_intent"] == "Get ready for the next departure"
    assert 0.4 <= profile["probability"] <= 0.92

    action_ids = [a["id"] for a in result["next_best_actions"]]
    assert action_ids == ["preflight-check", "loyalty-push"]
    assert result["learning_signals"]["loyalty"] == {"tier": "Silver", "balance": 1400, "next_tier_delta": 100}
    assert result["integrations"][0]["status"] == "connected"
    assert len(result["proactive_suggestions"]) <= 3
    assert [t["destination"] for t in result["timeline"]["upcoming"]] == ["Sousse"]
    assert len(result["timeline"]["recent"]) == 3


def test_empty_history_is_generic():
    result = build_recommendations(pairs=[], search_history=[], loyalty_balance=0, now=NOW)
    assert result["behavior_profile"]["archetype"] == "Opportunistic explorer"
    assert result["behavior_profile"]["probability"] == 0.4
    assert result["persona"]["proactive_mode"]["confidence"] == 0.35
    assert result["learning_signals"]["search_signal"] is None
    assert result["next_best_actions"] == []
    assert result["route_outlook"] == []


def test_recent_search_follow_up():
    search = SimpleNamespace(origin="Sfax", destination="Djerba", created_at=NOW - timedelta(hours=2))
    result = build_recommendations(pairs=[], search_history=[search], loyalty_balance=0, now=NOW)
    assert [a["id"] for a in result["next_best_actions"]] == ["search-followup"]
    assert result["behavior_profile"]["predicted_intent"] == "Confirm a new booking after today's searches"
    assert result["learning_signals"]["search_signal"]["hours_ago"] == 2.0


def test_assistant_endpoint(client, client_user, make_trip):
    client.get("/api/trips", params={"origin": "Tunis"}, headers=auth_headers(client_user))
    r = client.get(
        "/api/ai/assistant",
        headers={**auth_headers(client_user), "Accept-Language": "en-US,fr;q=0.5"},
    )
    assert r.status_code == 200
    data = r.json()
    assert data["persona"]["languages"][0] == "en-US"
    assert data["learning_signals"]["search_signal"]["last_query"].startswith("Tunis")
    assert client.get("/api/ai/assistant").status_code == 401
