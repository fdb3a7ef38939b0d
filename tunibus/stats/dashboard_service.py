import logging
from collections import Counter, defaultdict
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from tunibus.database import utcnow
from tunibus.models import Incident, Reservation, SearchLog, Trip, User, Vehicle

logger = logging.getLogger(__name__)

ENTITIES = [
    {"id": "national", "name": "National network", "factor": 1.0},
    {"id": "north", "name": "North & Greater Tunis", "factor": 1.2},
    {"id": "centre", "name": "Centre & Sahel", "factor": 0.9},
    {"id": "south", "name": "South & Sahara", "factor": 0.7},
]

CRISIS_OPEN_INCIDENTS = 5
ANOMALY_RATIO = 1.4
FORECAST_GROWTH = 0.05
CRISIS_ACTIONS = [
    "Activate the emergency unit",
    "Reassign buses to the critical areas",
    "Notify field teams",
]

FILL_RATE_TARGET = 80
PUNCTUALITY_TARGET = 95
CRITICAL_ALERTS_BASELINE = 3
LATE_INCIDENT_TYPES = ("traffic", "accident", "emergency")
OCCUPANCY_BUCKETS = [
    ("low", "0-50%", 0.0, 0.5),
    ("medium", "50-80%", 0.5, 0.8),
    ("high", "80-100%", 0.8, 1.01),
]

REVENUE_STATUSES = ("paid", "completed")


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min)


class DashboardService:
    """Operational figures for the back office"""

    def __init__(self, db: Session, now: Optional[datetime] = None):
        self.db = db
        self.now = now or utcnow()

    def _revenue_since(self, start: datetime) -> float:
        total = (
            self.db.query(func.coalesce(func.sum(Reservation.total_amount), 0))
            .filter(Reservation.booked_at >= start, Reservation.status.in_(REVENUE_STATUSES))
            .scalar()
        )
        return float(total or 0)

    def snapshot(self) -> Dict:
        today = _day_start(self.now.date())
        month_start = _day_start(self.now.date().replace(day=1))
        return {
            "users": self.db.query(User).count(),
            "vehicles": self.db.query(Vehicle).count(),
            "trips": self.db.query(Trip).count(),
            "active_trips": self.db.query(Trip).filter(Trip.status.in_(("scheduled", "in_progress"))).count(),
            "reservations_today": self.db.query(Reservation).filter(
                Reservation.booked_at >= today, Reservation.status != "cancelled"
            ).count(),
            "revenue_today": self._revenue_since(today),
            "revenue_month": self._revenue_since(month_start),
            "incidents_open": self.db.query(Incident).filter(Incident.status != "resolved").count(),
        }

    def trends(self, days: int = 7) -> List[Dict]:
        """Daily reservations and revenue, oldest day first, today included"""
        first_day = self.now.date() - timedelta(days=days - 1)
        reservations = (
            self.db.query(Reservation)
            .filter(Reservation.booked_at >= _day_start(first_day), Reservation.status != "cancelled")
            .all()
        )
        counts: Dict[date, int] = defaultdict(int)
        revenue: Dict[date, float] = defaultdict(float)
        for r in reservations:
            day = r.booked_at.date()
            counts[day] += 1
            if r.status in REVENUE_STATUSES:
                revenue[day] += float(r.total_amount or 0)

        series = []
        for offset in range(days):
            day = first_day + timedelta(days=offset)
            series.append({"day": day.isoformat(), "reservations": counts[day], "revenue": round(revenue[day], 2)})
        return series

    def recent_incidents(self, limit: int = 5) -> List[Incident]:
        return self.db.query(Incident).order_by(Incident.created_at.desc()).limit(limit).all()

    def dashboard(self, entity_id: str = "national") -> Dict:
        entity = next((e for e in ENTITIES if e["id"] == entity_id), ENTITIES[0])
        snapshot = self.snapshot()
        trends = self.trends(7)

        alerts = []
        if snapshot["incidents_open"] > 0:
            alerts.append({
                "type": "incident",
                "message": f"{snapshot['incidents_open']} incident(s) awaiting action",
                "severity": "high",
            })
        if snapshot["reservations_today"] == 0:
            alerts.append({"type": "demand", "message": "No reservation recorded today", "severity": "medium"})

        predictions = [
            {**point, "forecast": round(point["reservations"] * (1 + FORECAST_GROWTH * entity["factor"]))}
            for point in trends
        ]
        average = sum(p["reservations"] for p in trends) / max(len(trends), 1)
        anomaly_alerts = [
            {"date": p["day"], "message": f"Unusual demand detected on {p['day']}"}
            for p in trends
            if p["reservations"] > average * ANOMALY_RATIO
        ]
        multi_entities = [
            {
                "id": e["id"],
                "name": e["name"],
                "reservations_today": round(snapshot["reservations_today"] * e["factor"]),
                "incidents": round(snapshot["incidents_open"] * e["factor"] * 0.5),
            }
            for e in ENTITIES
        ]
        mode = "crisis" if snapshot["incidents_open"] > CRISIS_OPEN_INCIDENTS else "normal"

        return {
            "entity": entity,
            "snapshot": snapshot,
            "trends": trends,
            "predictions": predictions,
            "anomaly_alerts": anomaly_alerts,
            "multi_entities": multi_entities,
            "mode": mode,
            "crisis_actions": CRISIS_ACTIONS if mode == "crisis" else [],
            "alerts": alerts,
            "incidents": self.recent_incidents(),
        }

    # ---------------------------
    # KPIs
    # ---------------------------
    def load_factors(self, horizon_days: Optional[int] = None) -> List[Dict]:
        """Booked seats against vehicle capacity for every trip with a vehicle.

        With horizon_days only trips departing between now and now + horizon_days count.
        """
        reserved = dict(
            self.db.query(Reservation.trip_id, func.coalesce(func.sum(Reservation.seat_count), 0))
            .filter(Reservation.status != "cancelled")
            .group_by(Reservation.trip_id)
            .all()
        )
        query = self.db.query(Trip, Vehicle).join(Vehicle, Trip.vehicle_id == Vehicle.id)
        if horizon_days is not None:
            query = query.filter(
                Trip.departure_at >= self.now,
                Trip.departure_at <= self.now + timedelta(days=max(1, horizon_days)),
            )

        factors = []
        for trip, vehicle in query.order_by(Trip.departure_at).all():
            factors.append({
                "trip_id": trip.id,
                "status": trip.status,
                "capacity": vehicle.capacity or 0,
                "reserved": int(reserved.get(trip.id, 0)),
                "origin": trip.origin,
                "destination": trip.destination,
                "departure_at": trip.departure_at,
                "price": float(trip.price or 0),
                "vehicle_id": vehicle.id,
                "plate_number": vehicle.plate_number,
                "vehicle_status": vehicle.status,
                "driver_id": trip.driver_id,
            })
        return factors

    def kpis(self) -> Dict:
        snapshot = self.snapshot()
        trends = self.trends(7)
        factors = self.load_factors()
        incidents = self.db.query(Incident).all()

        completed = self.db.query(Trip).filter(Trip.status == "completed").count()
        late = [i for i in incidents if i.incident_type in LATE_INCIDENT_TYPES]
        critical = [i for i in incidents if i.severity == "critical" and i.status != "resolved"]
        punctuality = max(0.0, 100 - len(late) / completed * 100) if completed else 100.0

        rates = [min(1.0, f["reserved"] / f["capacity"]) if f["capacity"] > 0 else 0.0 for f in factors]
        fill_rate = round(sum(rates) / len(rates) * 100, 1) if rates else 0.0

        with_capacity = [f for f in factors if f["capacity"] > 0]
        buckets = []
        for bucket_id, label, low, high in OCCUPANCY_BUCKETS:
            count = sum(1 for f in with_capacity if low <= min(1.0, f["reserved"] / f["capacity"]) < high)
            buckets.append({"id": bucket_id, "label": label, "count": count})

        vehicle_counts = Counter(v.status or "unknown" for v in self.db.query(Vehicle).all())
        incident_counts = Counter(i.incident_type or "other" for i in incidents)

        trend_delta = 0.0
        if len(trends) >= 2:
            last = trends[-1]["reservations"]
            baseline = sum(t["reservations"] for t in trends[:-1]) / (len(trends) - 1)
            trend_delta = (last - baseline) / baseline * 100 if baseline > 0 else 0.0

        system_alerts = []
        if critical:
            system_alerts.append({
                "id": "critical-incidents",
                "message": f"{len(critical)} critical incident(s) in progress.",
                "severity": "critical",
            })
        else:
            system_alerts.append({"id": "no-critical-incidents", "message": "No critical incident.", "severity": "info"})
        if snapshot["reservations_today"] == 0:
            system_alerts.append({
                "id": "no-reservations-today",
                "message": "No reservation recorded today.",
                "severity": "warning",
            })
        if fill_rate < FILL_RATE_TARGET - 10:
            system_alerts.append({
                "id": "low-occupancy",
                "message": "Fill rate below the network target.",
                "severity": "warning",
            })

        return {
            "total_users": snapshot["users"],
            "total_vehicles": snapshot["vehicles"],
            "active_trips": snapshot["active_trips"],
            "total_trips": snapshot["trips"],
            "snapshot": snapshot,
            "kpis": {
                "fill_rate": {"value": fill_rate, "trend": round(fill_rate - FILL_RATE_TARGET, 1)},
                "punctuality": {"value": round(punctuality, 1), "trend": round(punctuality - PUNCTUALITY_TARGET, 1)},
                "critical_alerts": {"value": len(critical), "trend": len(critical) - CRITICAL_ALERTS_BASELINE},
            },
            "activity": [{"day": t["day"], "reservations": t["reservations"]} for t in trends],
            "revenue_series": [{"day": t["day"], "revenue": t["revenue"]} for t in trends],
            "occupancy_buckets": buckets,
            "vehicle_status_counts": [{"status": s, "count": c} for s, c in vehicle_counts.items()],
            "incident_type_counts": [{"type": t, "count": c} for t, c in incident_counts.items()],
            "trend": {
                "delta_percent": round(trend_delta, 1),
                "direction": "up" if trend_delta > 5 else "down" if trend_delta < -5 else "flat",
            },
            "system_alerts": system_alerts,
        }

    # ---------------------------
    # Search analytics
    # ---------------------------
    def recent_searches(self, limit: int = 50) -> List[SearchLog]:
        return self.db.query(SearchLog).order_by(SearchLog.created_at.desc()).limit(limit).all()

    def top_searches(self, limit: int = 10) -> List[Dict]:
        rows = (
            self.db.query(SearchLog.origin, SearchLog.destination, func.count(SearchLog.id).label("count"))
            .group_by(SearchLog.origin, SearchLog.destination)
            .order_by(func.count(SearchLog.id).desc())
            .limit(limit)
            .all()
        )
        return [{"origin": o, "destination": d, "count": c} for o, d, c in rows]
