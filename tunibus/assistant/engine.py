"""
Recommendation engine behind the travel assistant panel.

Every function here is pure: it works on reservations, trips and search logs
already loaded from the database plus an explicit ``now``, so the same input
always produces the same recommendations.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

DEFAULT_LANGUAGES = ["fr-FR", "ar-TN", "en-GB"]
MAX_LANGUAGES = 4

DEFAULT_BOOKING_WINDOW_DAYS = 4.0
DEFAULT_TRAVEL_RHYTHM_DAYS = 14.0
RICH_HISTORY_SIZE = 8

LOYALTY_TIERS = [
    (2500, "Platinum", None),
    (1500, "Gold", 2500),
    (700, "Silver", 1500),
    (0, "Bronze", 700),
]


@dataclass
class RouteStat:
    origin: str
    destination: str
    count: int = 0
    last_seen: Optional[datetime] = None

    @property
    def label(self) -> str:
        return f"{self.origin} → {self.destination}"


@dataclass
class TravelAnalytics:
    upcoming: List[Tuple] = field(default_factory=list)
    past: List[Tuple] = field(default_factory=list)
    favorite_routes: List[RouteStat] = field(default_factory=list)
    booking_window_avg: float = DEFAULT_BOOKING_WINDOW_DAYS
    travel_rhythm_days: float = DEFAULT_TRAVEL_RHYTHM_DAYS
    preferred_departure_hour: Optional[float] = None
    route_dominance: float = 0.0
    data_richness: float = 0.0


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _average(values: List[float], default: Optional[float] = None) -> Optional[float]:
    return sum(values) / len(values) if values else default


def _hours_between(a: Optional[datetime], b: Optional[datetime]) -> float:
    if a is None or b is None:
        return float("inf")
    return abs((b - a).total_seconds()) / 3600


def _title(value: Optional[str], fallback: str) -> str:
    value = (value or "").strip()
    return value[:1].upper() + value[1:] if value else fallback


def analyze_travel(pairs: List[Tuple], now: datetime) -> TravelAnalytics:
    """Derive travel habits from (reservation, trip) pairs"""
    analytics = TravelAnalytics()
    routes: Dict[str, RouteStat] = {}
    booking_windows: List[float] = []
    departure_hours: List[float] = []
    departures: List[datetime] = []

    for reservation, trip in pairs:
        departure = trip.departure_at if trip else None
        if departure:
            departures.append(departure)
            (analytics.upcoming if departure >= now else analytics.past).append((reservation, trip))
            departure_hours.append(departure.hour + departure.minute / 60)
            if reservation.booked_at:
                booking_windows.append(max(0.5, (departure - reservation.booked_at).total_seconds() / 86400))

        origin = _title(trip.origin if trip else None, "Route")
        destination = _title(trip.destination if trip else None, "Destination")
        stat = routes.setdefault(f"{origin}__{destination}", RouteStat(origin, destination))
        stat.count += 1
        if departure and (stat.last_seen is None or departure > stat.last_seen):
            stat.last_seen = departure

    departures.sort()
    intervals = [(b - a).total_seconds() / 86400 for a, b in zip(departures, departures[1:])]

    analytics.upcoming.sort(key=lambda pair: pair[1].departure_at)
    analytics.past.sort(key=lambda pair: pair[1].departure_at, reverse=True)
    analytics.favorite_routes = sorted(routes.values(), key=lambda r: r.count, reverse=True)
    if analytics.favorite_routes:
        analytics.route_dominance = analytics.favorite_routes[0].count / max(len(pairs), 1)
    analytics.booking_window_avg = _average(booking_windows, DEFAULT_BOOKING_WINDOW_DAYS)
    analytics.travel_rhythm_days = _average(intervals, DEFAULT_TRAVEL_RHYTHM_DAYS)
    analytics.preferred_departure_hour = _average(departure_hours)
    analytics.data_richness = min(1.0, len(pairs) / RICH_HISTORY_SIZE)
    return analytics


def parse_languages(header: Optional[str]) -> List[str]:
    """Languages from an Accept-Language header, topped up with the network defaults"""
    if not header:
        return list(DEFAULT_LANGUAGES)
    parsed = [segment.split(";")[0].strip() for segment in header.split(",")]
    ordered: List[str] = []
    for lang in [p for p in parsed if p] + DEFAULT_LANGUAGES:
        if lang not in ordered:
            ordered.append(lang)
    return ordered[:MAX_LANGUAGES]


def loyalty_tier(balance: int) -> Dict:
    for threshold, name, next_threshold in LOYALTY_TIERS:
        if balance >= threshold:
            return {
                "tier": name,
                "next_threshold": next_threshold,
                "delta": next_threshold - balance if next_threshold else None,
            }
    return {"tier": "Bronze", "next_threshold": 700, "delta": 700 - balance}


def behavior_profile(analytics: TravelAnalytics, search_recency_hours: float, now: datetime) -> Dict:
    archetype = "Opportunistic explorer"
    description = "Habits are still settling; the assistant tries several scenarios to learn preferred journeys."

    if analytics.route_dominance > 0.65 and analytics.travel_rhythm_days <= 10:
        archetype = "Structured commuter"
        description = "Highly repetitive, regular trips, ideal for anticipating needs automatically."
    elif analytics.booking_window_avg >= 10 and analytics.travel_rhythm_days >= 12:
        archetype = "Strategic planner"
        description = "Prefers to organise well in advance with a stable routine."

    predicted_intent = "Explore the suggested upcoming trips"
    if any(_hours_between(now, trip.departure_at) <= 36 for _, trip in analytics.upcoming):
        predicted_intent = "Get ready for the next departure"
    elif search_recency_hours < 12 and not analytics.upcoming:
        predicted_intent = "Confirm a new booking after today's searches"
    elif analytics.travel_rhythm_days <= 9:
        predicted_intent = "Plan the next recurring trip"

    probability = clamp(
        analytics.data_richness * 0.35
        + analytics.route_dominance * 0.45
        + (0.2 if search_recency_hours < 24 else 0),
        0.4, 0.92,
    )

    favorite = analytics.favorite_routes[0] if analytics.favorite_routes else None
    signals = [
        f"Average booking window: {analytics.booking_window_avg:.1f} d",
        f"Usual rhythm: {analytics.travel_rhythm_days:.1f} d",
        f"Dominant route: {favorite.label} ({favorite.count}x)" if favorite else "Dominant route: still learning",
        f"Last active signal {search_recency_hours:.1f} h ago" if search_recency_hours != float("inf") else "No recent search",
    ]
    return {
        "archetype": archetype,
        "description": description,
        "predicted_intent": predicted_intent,
        "probability": round(probability, 3),
        "signals": signals,
    }


def next_best_actions(analytics: TravelAnalytics, tier: Dict, balance: int,
                      search_recency_hours: float, last_search, now: datetime) -> List[Dict]:
    actions = []

    if analytics.upcoming:
        next_trip = analytics.upcoming[0][1]
        hours_left = (next_trip.departure_at - now).total_seconds() / 3600
        if hours_left <= 48:
            actions.append({
                "id": "preflight-check",
                "label": "Departure briefing and check-in",
                "description": "Check the itinerary, pack your essentials and keep your QR ticket at hand.",
                "impact": "high",
                "deadline": next_trip.departure_at.isoformat(),
                "data_points": [f"Time left: {round(hours_left)} h"],
            })

    if tier["next_threshold"] and tier["delta"] is not None and tier["delta"] <= 150:
        actions.append({
            "id": "loyalty-push",
            "label": "Move up to Platinum" if tier["tier"] == "Gold" else "Reach the next tier",
            "description": "A few more trips or missions unlock priority perks.",
            "impact": "medium",
            "data_points": [f"Current points: {balance}", f"{tier['delta']} points to go"],
        })

    if not analytics.upcoming and analytics.favorite_routes:
        favorite = analytics.favorite_routes[0]
        actions.append({
            "id": "predictive-slot",
            "label": f"Book a new {favorite.label} trip",
            "description": f"Your usual booking window is {round(analytics.booking_window_avg)} days.",
            "impact": "high",
            "data_points": [f"Typical window: {analytics.booking_window_avg:.1f} d"],
        })

    if search_recency_hours < 6 and last_search is not None:
        actions.append({
            "id": "search-followup",
            "label": "Resume your unfinished search",
            "description": f"You searched {last_search.origin or 'a trip'} → {last_search.destination or ''}. Finish booking?",
            "impact": "medium",
            "data_points": [last_search.created_at.strftime("%H:%M")] if last_search.created_at else [],
        })

    return actions[:4]


def route_outlook(analytics: TravelAnalytics) -> List[Dict]:
    total = max(1, len(analytics.upcoming) + len(analytics.past))
    confidence = clamp(analytics.route_dominance + analytics.data_richness * 0.5, 0.35, 0.9)
    return [
        {
            "route": route.label,
            "demand_score": round(route.count / total * 100),
            "recommended_window_days": round(analytics.booking_window_avg),
            "next_best_period": (
                (route.last_seen + timedelta(days=analytics.travel_rhythm_days)).isoformat()
                if route.last_seen else None
            ),
            "confidence": round(confidence, 3),
        }
        for route in analytics.favorite_routes[:2]
    ]


def proactive_suggestions(analytics: TravelAnalytics, search_history: List) -> List[Dict]:
    suggestions = []
    if analytics.favorite_routes:
        suggestions.append({
            "id": "auto-plan",
            "title": "Smart planning",
            "description": f"Schedule {analytics.favorite_routes[0].label} trips automatically",
            "rationale": "Strong repetition and a steady rhythm detected",
            "channels": ["Siri", "Google Assistant"],
        })
    if search_history:
        suggestions.append({
            "id": "contextual-agent",
            "title": "Contextual reminders",
            "description": "Set a voice reminder two hours before your next planned search.",
            "rationale": "Recent activity on trip search",
            "channels": ["Dynamic notifications"],
        })
    suggestions.append({
        "id": "habit-optimizer",
        "title": "Proactive optimisation",
        "description": "Suggest faster alternatives at traffic peaks on your dominant route.",
        "rationale": "Anticipates disruptions automatically",
        "channels": ["AI alerts"],
    })
    return suggestions[:3]


def integrations(user_agent: Optional[str], now: datetime) -> List[Dict]:
    agent = (user_agent or "").lower()
    is_ios = "iphone" in agent or "ipad" in agent
    is_android = "android" in agent
    is_desktop = "macintosh" in agent or "windows" in agent
    google = is_android or is_desktop
    return [
        {
            "provider": "Siri",
            "status": "connected" if is_ios else "available",
            "capabilities": ["Contextual voice commands", "Trip reminders"],
            "last_sync": now.isoformat() if is_ios else None,
        },
        {
            "provider": "Google Assistant",
            "status": "connected" if google else "available",
            "capabilities": ["Daily briefings", "Quick actions"],
            "last_sync": now.isoformat() if google else None,
        },
        {
            "provider": "Alexa",
            "status": "ready to enable",
            "capabilities": ["Smart home mode", "Multi-room announcements"],
            "last_sync": None,
        },
    ]


def _timeline_entry(pair) -> Dict:
    reservation, trip = pair
    return {
        "trip_id": trip.id,
        "origin": trip.origin,
        "destination": trip.destination,
        "departure": trip.departure_at.isoformat(),
        "status": trip.status or reservation.status,
    }


def build_recommendations(
    pairs: List[Tuple],
    search_history: List,
    loyalty_balance: int,
    now: datetime,
    user_agent: Optional[str] = None,
    accept_language: Optional[str] = None,
) -> Dict:
    """Assemble the full assistant payload"""
    analytics = analyze_travel(pairs, now)
    languages = parse_languages(accept_language)
    tier = loyalty_tier(loyalty_balance)
    last_search = search_history[0] if search_history else None
    recency = _hours_between(last_search.created_at, now) if last_search else float("inf")
    favorite = analytics.favorite_routes[0] if analytics.favorite_routes else None

    confidence = clamp(
        analytics.data_richness * 0.5 + (0.25 if len(search_history) > 4 else 0),
        0.35, 0.95,
    )

    return {
        "generated_at": now.isoformat(),
        "persona": {
            "codename": "Atlas",
            "specialities": [
                "Real-time behaviour profiling",
                "Route and disruption prediction",
                "Voice assistant orchestration (Siri, Google, Alexa)",
            ],
            "languages": languages,
            "proactive_mode": {
                "enabled": True,
                "confidence": round(confidence, 3),
                "last_review": favorite.last_seen.isoformat() if favorite and favorite.last_seen else None,
            },
        },
        "learning_signals": {
            "favorite_route": favorite.label if favorite else None,
            "booking_window_days": round(analytics.booking_window_avg, 1),
            "travel_rhythm_days": round(analytics.travel_rhythm_days, 1),
            "preferred_departure_hour": (
                round(analytics.preferred_departure_hour, 1)
                if analytics.preferred_departure_hour is not None else None
            ),
            "loyalty": {
                "tier": tier["tier"],
                "balance": loyalty_balance,
                "next_tier_delta": tier["delta"],
            },
            "search_signal": (
                None if recency == float("inf") else {
                    "last_query": f"{last_search.origin or '?'} → {last_search.destination or '?'}",
                    "hours_ago": round(recency, 1),
                }
            ),
            "model_confidence": round(confidence, 3),
        },
        "behavior_profile": behavior_profile(analytics, recency, now),
        "next_best_actions": next_best_actions(analytics, tier, loyalty_balance, recency, last_search, now),
        "proactive_suggestions": proactive_suggestions(analytics, search_history),
        "route_outlook": route_outlook(analytics),
        "integrations": integrations(user_agent, now),
        "conversation": {
            "preferred_languages": languages,
            "tone": "Empathetic and proactive",
            "context_summary": (
                f"Focus on {favorite.label}, rhythm {analytics.travel_rhythm_days:.1f} d"
                if favorite else "Generic profile: still collecting signals"
            ),
        },
        "timeline": {
            "upcoming": [_timeline_entry(p) for p in analytics.upcoming[:3]],
            "recent": [_timeline_entry(p) for p in analytics.past[:3]],
        },
    }
