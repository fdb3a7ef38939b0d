import asyncio
import logging
import re
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from tunibus.config import settings
from tunibus.database import SessionLocal, utcnow
from tunibus.models import Incident, OptimizationRecommendation, OptimizationRule, Trip, Vehicle
from tunibus.optimization.schemas import RecommendationStatusUpdate, RuleInput, RuleOverride
from tunibus.stats.dashboard_service import DashboardService

logger = logging.getLogger(__name__)

TREND_DAYS = 21
RECENT_INCIDENTS = 50
DEFAULT_RULE = {
    "enabled": True,
    "route_pattern": None,
    "threshold": 1.2,
    "auto_apply": False,
    "min_rest_hours": 8,
    "service_window": "05:00-23:00",
}

HIGH_DEMAND = 0.85
LOW_DEMAND = 0.6
MAX_SUGGESTIONS = 3

_latest_report: Optional[Dict] = None


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def average(values: List[float], fallback: float) -> float:
    return sum(values) / len(values) if values else fallback


def occupancy(factor: Dict) -> float:
    """Share of the vehicle booked, capped at 1 for overbooked trips"""
    if not factor["capacity"] or factor["capacity"] <= 0:
        return 0.0
    return min(1.0, factor["reserved"] / factor["capacity"])


def route_name(origin: str, destination: str) -> str:
    return f"{origin} -> {destination}"


def aggregate_routes(factors: List[Dict]) -> List[Dict]:
    """Group trip load factors by origin and destination"""
    buckets: Dict[tuple, Dict] = {}
    for factor in factors:
        origin = (factor["origin"] or "").strip().title() or "Route"
        destination = (factor["destination"] or "").strip().title() or "Destination"
        bucket = buckets.setdefault((origin, destination), {
            "origin": origin,
            "destination": destination,
            "reserved": 0,
            "capacity": 0,
            "price_sum": 0.0,
            "trips": [],
            "vehicle_ids": set(),
        })
        bucket["reserved"] += factor["reserved"]
        bucket["capacity"] += factor["capacity"]
        bucket["price_sum"] += factor["price"] or 0
        bucket["trips"].append(factor)
        if factor.get("vehicle_id"):
            bucket["vehicle_ids"].add(factor["vehicle_id"])

    routes = []
    for bucket in buckets.values():
        routes.append({
            "origin": bucket["origin"],
            "destination": bucket["destination"],
            "occupancy": bucket["reserved"] / bucket["capacity"] if bucket["capacity"] else 0.0,
            "avg_price": bucket["price_sum"] / len(bucket["trips"]),
            "reserved": bucket["reserved"],
            "capacity": bucket["capacity"],
            "vehicle_count": len(bucket["vehicle_ids"]),
        })
    return routes


# ---------------------------
# Forecasts and insights
# ---------------------------
def build_demand_forecast(trends: List[Dict], horizon_days: int, top_searches: List[Dict], today: date) -> List[Dict]:
    """Daily demand for the next horizon_days days from weekday averages and a few multipliers"""
    by_weekday: Dict[int, List[int]] = defaultdict(list)
    for point in trends:
        by_weekday[date.fromisoformat(point["day"]).weekday()].append(point["reservations"])
    overall = [p["reservations"] for p in trends]

    total_searches = sum(s["count"] for s in top_searches)
    search_pressure = min(0.3, top_searches[0]["count"] / total_searches) if total_searches else 0.05

    forecast = []
    for offset in range(1, horizon_days + 1):
        target = today + timedelta(days=offset)
        weekday = target.weekday()
        if weekday in by_weekday:
            baseline = average(by_weekday[weekday], average(overall, 45))
        else:
            baseline = average(overall, 35)

        seasonality = 0.12 if weekday >= 5 else -0.05 if weekday == 0 else 0.02
        weather = 0.06 if 6 <= target.month <= 9 else 0.03
        events = 0.04 if offset <= 3 else 0.02
        search = search_pressure * (0.35 if offset <= 3 else 0.18)
        multiplier = 1 + seasonality + weather + events + search

        forecast.append({
            "date": target.isoformat(),
            "demand": round(max(10, baseline * multiplier)),
            "confidence": clamp(0.82 - offset * 0.03 + len(trends) * 0.004, 0.5, 0.92),
            "drivers": {
                "weather": round(weather, 2),
                "events": round(events, 2),
                "search": round(search, 2),
                "seasonality": round(seasonality, 2),
            },
        })
    return forecast


def build_pricing_insights(factors: List[Dict]) -> List[Dict]:
    insights = []
    for route in aggregate_routes(factors):
        if route["occupancy"] >= 0.9:
            action, delta = "raise", 8
            rationale = "Route close to saturation, seats are getting scarce"
        elif route["occupancy"] <= 0.5:
            action, delta = "lower", -6
            rationale = "Persistent under-use, run a targeted promotion"
        else:
            action, delta = "stabilise", 0
            rationale = "Fill rate in line with the 70-85% target"
        insights.append({
            "route": route_name(route["origin"], route["destination"]),
            "action": action,
            "delta": delta,
            "occupancy": round(route["occupancy"] * 100, 1),
            "recommended_price": round(route["avg_price"] * (1 + delta / 100), 2),
            "rationale": rationale,
            "confidence": clamp(route["occupancy"] * 0.8 + 0.2, 0.45, 0.9),
        })
    insights.sort(key=lambda i: abs(i["delta"]), reverse=True)
    return insights[:4]


def build_maintenance_outlook(vehicles: List[Vehicle], incident_vehicle_ids: List[str],
                              factors: List[Dict], now: datetime) -> Dict:
    """Risk score per vehicle from recent incidents, planned load and status"""
    incidents_by_vehicle: Dict[str, int] = defaultdict(int)
    for vehicle_id in incident_vehicle_ids:
        incidents_by_vehicle[vehicle_id] += 1
    loads_by_vehicle: Dict[str, List[Dict]] = defaultdict(list)
    for factor in factors:
        if factor.get("vehicle_id"):
            loads_by_vehicle[factor["vehicle_id"]].append(factor)

    scored = []
    for vehicle in vehicles:
        incidents = incidents_by_vehicle.get(vehicle.id, 0)
        loads = loads_by_vehicle.get(vehicle.id, [])
        avg_occupancy = average(
            [f["reserved"] / f["capacity"] if f["capacity"] else 0.0 for f in loads], 0.35
        )
        score = 35 + incidents * 20 + len(loads) * 3 + avg_occupancy * 25
        if vehicle.status == "maintenance":
            score += 15
        elif vehicle.status == "available" and avg_occupancy < 0.4:
            score -= 5
        score = clamp(score, 10, 100)

        if score >= 70:
            risk, recommendation = "high", "Schedule priority maintenance"
        elif score >= 45:
            risk, recommendation = "medium", "Reduce load or inspect within 72h"
        else:
            risk, recommendation = "low", "Nominal pace, keep monitoring"
        scored.append({
            "vehicle_id": vehicle.id,
            "plate_number": vehicle.plate_number,
            "status": vehicle.status,
            "incidents": incidents,
            "risk_score": round(score),
            "risk": risk,
            "avg_occupancy": round(avg_occupancy * 100, 1),
            "next_check": now + timedelta(days=max(2, 10 - incidents * 2)),
            "recommendation": recommendation,
        })

    fleet_risk_index = round(average([v["risk_score"] for v in scored], 35))
    scored.sort(key=lambda v: v["risk_score"], reverse=True)
    return {"fleet_risk_index": fleet_risk_index, "vehicles": scored[:4]}


def build_impact_simulations(pricing: List[Dict], maintenance: Dict) -> List[Dict]:
    scenarios = []
    peak = next((i for i in pricing if i["action"] == "raise"), None)
    if peak:
        scenarios.append({
            "id": "extra-bus",
            "title": f"Add a rotation on {peak['route']}",
            "expected_gain": "+12% satisfaction",
            "cost": "One bus and crew",
            "confidence": peak["confidence"],
            "summary": "Relieves the saturated departures while keeping dynamic pricing.",
        })

    soft = next((i for i in pricing if i["action"] == "lower"), None)
    if soft:
        scenarios.append({
            "id": "flash-offer",
            "title": f"Flash offer on {soft['route']}",
            "expected_gain": "+18% fill rate over 72h",
            "cost": f"-{abs(soft['delta'])}% for a limited time",
            "confidence": soft["confidence"],
            "summary": "Wins back price-sensitive travellers on quiet routes.",
        })

    if maintenance["vehicles"]:
        top = maintenance["vehicles"][0]
        scenarios.append({
            "id": "predictive-maintenance",
            "title": f"Early inspection of {top['plate_number']}",
            "expected_gain": "Keeps the vehicle available next week",
            "cost": "Off the road for less than 24h",
            "confidence": min(0.9, top["risk_score"] / 100 + 0.3),
            "summary": "Lowers incident risk where the network is most exposed.",
        })

    if not scenarios:
        scenarios.append({
            "id": "baseline",
            "title": "Steady operations",
            "expected_gain": "+3% margin",
            "cost": "None",
            "confidence": 0.5,
            "summary": "Keep operating with closer monitoring.",
        })
    return scenarios


def build_predictive_overview(snapshot: Dict, pricing: List[Dict], maintenance: Dict) -> Dict:
    stress_factors = [
        snapshot["incidents_open"] * 8,
        25 if snapshot["reservations_today"] > (snapshot["trips"] or 1) * 4 else 0,
        maintenance["fleet_risk_index"] * 0.5,
    ]
    stress_index = int(clamp(round(sum(stress_factors) / 3), 10, 100))

    alerts = []
    if snapshot["incidents_open"] > 3:
        alerts.append({
            "id": "incident-peak",
            "severity": "high",
            "message": f"{snapshot['incidents_open']} open incidents: mobilise the field unit",
        })
    if any(i["action"] == "raise" and i["occupancy"] > 95 for i in pricing):
        alerts.append({
            "id": "saturation",
            "severity": "medium",
            "message": "A recurring route is saturated: consider adding a vehicle",
        })

    windows = [
        {
            "route": i["route"],
            "window": "48h" if i["action"] == "raise" else "72h",
            "action": i["action"],
            "gain_potential": "+6% margin" if i["action"] == "raise" else "+15% fill rate",
        }
        for i in pricing
        if i["action"] != "stabilise"
    ]
    return {"stress_index": stress_index, "alerts": alerts, "opportunity_windows": windows}


# ---------------------------
# Fleet balancing
# ---------------------------
def build_heatmap(factors: List[Dict], forecast: List[Dict]) -> List[Dict]:
    avg_daily_demand = average([f["demand"] for f in forecast], 0)
    demand_confidence = forecast[0]["confidence"] if forecast else 0.7
    return [
        {
            "route_label": route_name(route["origin"], route["destination"]),
            "origin": route["origin"],
            "destination": route["destination"],
            "occupancy": round(route["occupancy"], 2),
            "avg_price": round(route["avg_price"], 2),
            "demand": round(avg_daily_demand * route["occupancy"]),
            "demand_confidence": demand_confidence,
            "capacity": route["capacity"],
            "reserved": route["reserved"],
            "geo_zone": route["origin"].split(" ")[0].upper(),
            "vehicle_count": route["vehicle_count"],
        }
        for route in aggregate_routes(factors)
    ]


def balance_kpis(factors: List[Dict], forecast: List[Dict]) -> Dict:
    avg_occupancy = average([occupancy(f) for f in factors], 0.0)
    total_capacity = sum(f["capacity"] or 0 for f in factors)
    total_demand = sum(f["demand"] for f in forecast)
    return {
        "average_occupancy": round(avg_occupancy * 100, 1),
        "unmet_demand": max(0, total_demand - total_capacity),
        "balance_score": round(clamp(45 + avg_occupancy * 55, 0, 100)),
    }


def _rule_value(rule, field: str):
    value = rule.get(field) if isinstance(rule, dict) else getattr(rule, field, None)
    return DEFAULT_RULE.get(field) if value is None else value


def matching_rule(rules: List, route: str, load: float):
    """First enabled rule whose pattern matches the route and whose threshold the load reaches"""
    for rule in rules:
        if not _rule_value(rule, "enabled"):
            continue
        pattern = _rule_value(rule, "route_pattern")
        if pattern:
            try:
                if not re.search(pattern, route, re.IGNORECASE):
                    continue
            except re.error:
                logger.warning("Skipping optimization rule with invalid pattern %r", pattern)
                continue
        if load >= float(_rule_value(rule, "threshold")):
            return rule
    return None


def operational_recommendations(factors: List[Dict], rules: List) -> List[Dict]:
    """Pair the fullest trips with the emptiest ones whose bus could be moved"""
    enriched = [dict(f, occupancy=occupancy(f)) for f in factors if f["capacity"] > 0 and f.get("departure_at")]
    high_demand = sorted((f for f in enriched if f["occupancy"] >= HIGH_DEMAND),
                         key=lambda f: f["occupancy"], reverse=True)
    donors = sorted((f for f in enriched if f["occupancy"] <= LOW_DEMAND and f.get("vehicle_id")),
                    key=lambda f: f["occupancy"])

    suggestions = []
    for high in high_demand:
        if len(suggestions) >= MAX_SUGGESTIONS:
            break
        donor = next((d for d in donors if d["vehicle_id"] != high.get("vehicle_id")), None)
        if donor is None:
            continue
        donors.remove(donor)

        delta = high["occupancy"] - donor["occupancy"]
        target = route_name(high["origin"], high["destination"])
        rule = matching_rule(rules, target, high["occupancy"])
        rule_id = _rule_value(rule, "id") if rule else None
        suggestions.append({
            "route_from": route_name(donor["origin"], donor["destination"]),
            "route_to": target,
            "recommended_start": high["departure_at"],
            "narrative": (
                f"Move bus {donor.get('plate_number') or donor['vehicle_id']} from "
                f"{donor['origin']} -> {donor['destination']} to {target} to absorb the expected demand."
            ),
            "reason": f"Projected demand {round(high['occupancy'] * 100)}% vs {round(donor['occupancy'] * 100)}% fill rate.",
            "confidence": min(0.95, 0.55 + delta * 0.5),
            "priority": max(1, round(min(9, delta * 10))),
            "recommended_vehicle_id": donor["vehicle_id"],
            "recommended_driver_id": donor.get("driver_id"),
            "rule_id": rule_id,
            "auto_apply": bool(_rule_value(rule, "auto_apply")) if rule else False,
            "details": {
                "high_occupancy": high["occupancy"],
                "low_occupancy": donor["occupancy"],
                "demand_gap": delta,
                "rule_id": rule_id,
            },
        })
    return suggestions


def apply_rule_overrides(rules: List[OptimizationRule], overrides: Optional[List[RuleOverride]]) -> List[Dict]:
    """Stored rules patched by the overrides, plus temporary rules for overrides without an id"""
    base = [rule_as_dict(rule) for rule in rules]
    if not overrides:
        return base

    by_id = {o.id: o.model_dump(exclude_unset=True, exclude={"id"}) for o in overrides if o.id}
    merged = [dict(rule, **{k: v for k, v in by_id.get(rule["id"], {}).items() if v is not None}) for rule in base]
    stamp = utcnow().strftime("%Y%m%d%H%M%S")
    extras = [
        dict(DEFAULT_RULE, **{k: v for k, v in o.model_dump(exclude={"id"}).items() if v is not None},
             id=f"temp-{stamp}-{index}")
        for index, o in enumerate(o for o in overrides if not o.id and o.name)
    ]
    return merged + extras


def rule_as_dict(rule: OptimizationRule) -> Dict:
    return {
        "id": rule.id,
        "name": rule.name,
        "enabled": rule.enabled,
        "route_pattern": rule.route_pattern,
        "threshold": rule.threshold,
        "auto_apply": rule.auto_apply,
        "min_rest_hours": rule.min_rest_hours,
        "service_window": rule.service_window,
        "details": rule.details or {},
    }


def latest_report() -> Optional[Dict]:
    return _latest_report


class OptimizationService:
    """Demand forecasts, pricing and maintenance insights, and bus reallocation suggestions"""

    def __init__(self, db: Session, now: Optional[datetime] = None):
        self.db = db
        self.now = now or utcnow()
        self.dashboard = DashboardService(db, self.now)

    def context(self, horizon_days: int) -> Dict:
        factors = self.dashboard.load_factors(horizon_days)
        forecast = build_demand_forecast(
            self.dashboard.trends(TREND_DAYS), horizon_days, self.dashboard.top_searches(50), self.now.date()
        )
        return {"load_factors": factors, "demand_forecast": forecast}

    def _incident_vehicle_ids(self) -> List[str]:
        """Vehicle of the trip behind each recent incident"""
        recent = (
            self.db.query(Incident.trip_id)
            .filter(Incident.trip_id.isnot(None))
            .order_by(Incident.created_at.desc())
            .limit(RECENT_INCIDENTS)
            .all()
        )
        trip_ids = [trip_id for (trip_id,) in recent]
        if not trip_ids:
            return []
        vehicle_by_trip = dict(
            self.db.query(Trip.id, Trip.vehicle_id).filter(Trip.id.in_(list(set(trip_ids))), Trip.vehicle_id.isnot(None)).all()
        )
        return [vehicle_by_trip[t] for t in trip_ids if t in vehicle_by_trip]

    def predictive_report(self, horizon_days: int = 7, ctx: Optional[Dict] = None) -> Dict:
        ctx = ctx or self.context(horizon_days)
        pricing = build_pricing_insights(ctx["load_factors"])
        maintenance = build_maintenance_outlook(
            self.db.query(Vehicle).all(), self._incident_vehicle_ids(), ctx["load_factors"], self.now
        )
        return {
            "generated_at": self.now,
            "horizon_days": horizon_days,
            "demand_forecast": ctx["demand_forecast"],
            "pricing_insights": pricing,
            "maintenance": maintenance,
            "impact_simulations": build_impact_simulations(pricing, maintenance),
            "predictive_dashboard": build_predictive_overview(self.dashboard.snapshot(), pricing, maintenance),
        }

    def list_rules(self) -> List[OptimizationRule]:
        return self.db.query(OptimizationRule).order_by(OptimizationRule.created_at.asc()).all()

    def list_recommendations(self, statuses: Optional[List[str]] = None,
                             route: Optional[str] = None) -> List[OptimizationRecommendation]:
        query = self.db.query(OptimizationRecommendation)
        if statuses:
            query = query.filter(OptimizationRecommendation.status.in_(statuses))
        if route:
            pattern = f"%{route}%"
            query = query.filter(or_(
                OptimizationRecommendation.route_from.ilike(pattern),
                OptimizationRecommendation.route_to.ilike(pattern),
            ))
        return query.order_by(OptimizationRecommendation.created_at.desc()).all()

    def _balance_view(self, horizon_days: int, rules: List) -> Dict:
        ctx = self.context(horizon_days)
        return {
            "horizon_days": horizon_days,
            "heatmap": build_heatmap(ctx["load_factors"], ctx["demand_forecast"]),
            "kpis": balance_kpis(ctx["load_factors"], ctx["demand_forecast"]),
            "demand_forecast": ctx["demand_forecast"],
            "load_factors": ctx["load_factors"],
            "rules": rules,
            "suggestions": operational_recommendations(ctx["load_factors"], rules),
        }

    def recommendations(self, horizon_days: int = 7, statuses: Optional[List[str]] = None,
                        route: Optional[str] = None) -> Dict:
        view = self._balance_view(horizon_days, self.list_rules())
        view["stored_recommendations"] = self.list_recommendations(statuses, route)
        view["latest_report"] = latest_report()
        return view

    def simulate(self, horizon_days: int, overrides: Optional[List[RuleOverride]] = None) -> Dict:
        """Suggestions under patched rules; nothing is stored"""
        return self._balance_view(horizon_days, apply_rule_overrides(self.list_rules(), overrides))

    def save_rules(self, rules: List[RuleInput]) -> List[OptimizationRule]:
        """Update rules that carry a known id and create the others"""
        saved = []
        for data in rules:
            fields = data.model_dump(exclude={"id"}, exclude_unset=True)
            rule = self.db.query(OptimizationRule).filter(OptimizationRule.id == data.id).first() if data.id else None
            if rule is None:
                rule = OptimizationRule(**{**DEFAULT_RULE, **{k: v for k, v in fields.items() if v is not None}})
                self.db.add(rule)
            else:
                for field, value in fields.items():
                    if value is not None:
                        setattr(rule, field, value)
            saved.append(rule)
        self.db.commit()
        for rule in saved:
            self.db.refresh(rule)
        logger.info("Saved %d optimization rules", len(saved))
        return saved

    def update_recommendation_status(self, recommendation_id: str, data: RecommendationStatusUpdate,
                                     user_id: str) -> Optional[OptimizationRecommendation]:
        recommendation = (
            self.db.query(OptimizationRecommendation)
            .filter(OptimizationRecommendation.id == recommendation_id)
            .first()
        )
        if not recommendation:
            return None
        recommendation.status = data.status.value
        if data.priority is not None:
            recommendation.priority = data.priority
        if data.comment:
            recommendation.details = {**(recommendation.details or {}), "comment": data.comment, "updated_by": user_id}
        self.db.commit()
        self.db.refresh(recommendation)
        return recommendation

    def run_cycle(self, horizon_days: int = 7) -> Dict:
        """Compute a fresh report, store the reallocation suggestions and keep the report as the latest"""
        global _latest_report
        ctx = self.context(horizon_days)
        report = self.predictive_report(horizon_days, ctx)

        suggestions = operational_recommendations(ctx["load_factors"], self.list_rules())
        for suggestion in suggestions:
            self.db.add(OptimizationRecommendation(
                route_from=suggestion["route_from"],
                route_to=suggestion["route_to"],
                recommended_start=suggestion["recommended_start"],
                narrative=suggestion["narrative"],
                reason=suggestion["reason"],
                priority=suggestion["priority"],
                confidence=round(suggestion["confidence"], 2),
                recommended_vehicle_id=suggestion["recommended_vehicle_id"],
                recommended_driver_id=suggestion["recommended_driver_id"],
                details={**suggestion["details"], "auto_apply": suggestion["auto_apply"]},
            ))
        self.db.commit()

        _latest_report = report
        logger.info("Optimization cycle stored %d recommendations", len(suggestions))
        return report


async def run_optimization_scheduler(interval: Optional[int] = None, horizon_days: int = 7):
    """Run an optimization cycle every interval seconds"""
    interval = interval or settings.OPTIMIZATION_INTERVAL_SECONDS
    while True:
        await asyncio.sleep(interval)
        db = SessionLocal()
        try:
            OptimizationService(db).run_cycle(horizon_days)
        except Exception:
            logger.exception("Resource optimization cycle failed")
        finally:
            db.close()
