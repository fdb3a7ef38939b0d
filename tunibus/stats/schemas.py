from pydantic import BaseModel
from typing import List, Optional, Dict, Any
from datetime import datetime

from tunibus.incidents.schemas import Incident

class Entity(BaseModel):
    id: str
    name: str
    factor: float

class Snapshot(BaseModel):
    users: int
    vehicles: int
    trips: int
    active_trips: int
    reservations_today: int
    revenue_today: float
    revenue_month: float
    incidents_open: int

class DailyPoint(BaseModel):
    day: str
    reservations: int
    revenue: float

class Prediction(DailyPoint):
    forecast: int

class AnomalyAlert(BaseModel):
    date: str
    message: str

class EntityFigures(BaseModel):
    id: str
    name: str
    reservations_today: int
    incidents: int

class DashboardAlert(BaseModel):
    type: str
    message: str
    severity: str

class Dashboard(BaseModel):
    """Back-office dashboard for one network entity"""
    entity: Entity
    snapshot: Snapshot
    trends: List[DailyPoint]
    predictions: List[Prediction]
    anomaly_alerts: List[AnomalyAlert]
    multi_entities: List[EntityFigures]
    mode: str
    crisis_actions: List[str]
    alerts: List[DashboardAlert]
    incidents: List[Incident]

class KpiValue(BaseModel):
    value: float
    trend: float

class Kpis(BaseModel):
    fill_rate: KpiValue
    punctuality: KpiValue
    critical_alerts: KpiValue

class OccupancyBucket(BaseModel):
    id: str
    label: str
    count: int

class StatusCount(BaseModel):
    status: str
    count: int

class TypeCount(BaseModel):
    type: str
    count: int

class Trend(BaseModel):
    delta_percent: float
    direction: str

class SystemAlert(BaseModel):
    id: str
    message: str
    severity: str

class StatsOverview(BaseModel):
    total_users: int
    total_vehicles: int
    active_trips: int
    total_trips: int
    snapshot: Snapshot
    kpis: Kpis
    activity: List[Dict[str, Any]]
    revenue_series: List[Dict[str, Any]]
    occupancy_buckets: List[OccupancyBucket]
    vehicle_status_counts: List[StatusCount]
    incident_type_counts: List[TypeCount]
    trend: Trend
    system_alerts: List[SystemAlert]

class SearchLog(BaseModel):
    id: str
    user_id: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    travel_date: Optional[str] = None
    result_count: int
    source: str
    created_at: datetime

    class Config:
        from_attributes = True

class TopSearch(BaseModel):
    origin: Optional[str] = None
    destination: Optional[str] = None
    count: int

class HealthComponent(BaseModel):
    component: str
    status: str
    message: str
    response_time_ms: Optional[float] = None

class SystemHealth(BaseModel):
    overall_status: str
    checked_at: datetime
    metrics: Dict[str, float]
    components: List[HealthComponent]
    alerts: List[Dict[str, Any]]
