import re
from pydantic import BaseModel, Field, validator
from typing import List, Optional, Dict, Any
from datetime import datetime
from enum import Enum

class RecommendationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

# Rules
class RuleFields(BaseModel):
    route_pattern: Optional[str] = Field(None, max_length=200)
    threshold: Optional[float] = Field(None, ge=0, le=5)
    auto_apply: Optional[bool] = None
    enabled: Optional[bool] = None
    min_rest_hours: Optional[int] = Field(None, ge=0)
    service_window: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}-\d{2}:\d{2}$")
    details: Optional[Dict[str, Any]] = None

    @validator("route_pattern")
    def valid_pattern(cls, v):
        if v:
            try:
                re.compile(v)
            except re.error:
                raise ValueError("route_pattern must be a valid regular expression")
        return v

class RuleInput(RuleFields):
    id: Optional[str] = None
    name: str = Field(..., min_length=3, max_length=120)

class RuleOverride(RuleFields):
    """Partial rule; with an id it patches a stored rule, without one it adds a temporary rule"""
    id: Optional[str] = None
    name: Optional[str] = Field(None, min_length=3, max_length=120)

class RulesSave(BaseModel):
    rules: List[RuleInput]

class Rule(BaseModel):
    id: str
    name: str
    enabled: bool
    route_pattern: Optional[str] = None
    threshold: float
    auto_apply: bool
    min_rest_hours: int
    service_window: str
    details: Dict[str, Any] = {}

    class Config:
        from_attributes = True

class SimulationRequest(BaseModel):
    horizon_days: Optional[int] = Field(None, ge=1, le=14)
    overrides: Optional[List[RuleOverride]] = None

class RunRequest(BaseModel):
    horizon_days: Optional[int] = Field(None, ge=1, le=14)

# Recommendations
class RecommendationStatusUpdate(BaseModel):
    status: RecommendationStatus
    priority: Optional[int] = Field(None, ge=0)
    comment: Optional[str] = Field(None, max_length=500)

class Recommendation(BaseModel):
    id: str
    route_from: str
    route_to: str
    recommended_start: Optional[datetime] = None
    narrative: Optional[str] = None
    reason: Optional[str] = None
    status: str
    priority: int
    confidence: Optional[float] = None
    recommended_vehicle_id: Optional[str] = None
    recommended_driver_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True

class Suggestion(BaseModel):
    route_from: str
    route_to: str
    recommended_start: Optional[datetime] = None
    narrative: str
    reason: str
    confidence: float
    priority: int
    recommended_vehicle_id: Optional[str] = None
    recommended_driver_id: Optional[str] = None
    rule_id: Optional[str] = None
    auto_apply: bool = False
    details: Dict[str, Any] = {}

# Analytics
class DemandDrivers(BaseModel):
    weather: float
    events: float
    search: float
    seasonality: float

class DemandForecastEntry(BaseModel):
    date: str
    demand: int
    confidence: float
    drivers: DemandDrivers

class PricingInsight(BaseModel):
    route: str
    action: str
    delta: int
    occupancy: float
    recommended_price: float
    rationale: str
    confidence: float

class VehicleRisk(BaseModel):
    vehicle_id: str
    plate_number: str
    status: Optional[str] = None
    incidents: int
    risk_score: int
    risk: str
    avg_occupancy: float
    next_check: datetime
    recommendation: str

class MaintenanceOutlook(BaseModel):
    fleet_risk_index: int
    vehicles: List[VehicleRisk]

class ImpactSimulation(BaseModel):
    id: str
    title: str
    expected_gain: str
    cost: str
    confidence: float
    summary: str

class PredictiveAlert(BaseModel):
    id: str
    severity: str
    message: str

class OpportunityWindow(BaseModel):
    route: str
    window: str
    action: str
    gain_potential: str

class PredictiveOverview(BaseModel):
    stress_index: int
    alerts: List[PredictiveAlert]
    opportunity_windows: List[OpportunityWindow]

class OptimizationReport(BaseModel):
    """Forecasts, pricing, maintenance risk and what-if scenarios for the coming days"""
    generated_at: datetime
    horizon_days: int
    demand_forecast: List[DemandForecastEntry]
    pricing_insights: List[PricingInsight]
    maintenance: MaintenanceOutlook
    impact_simulations: List[ImpactSimulation]
    predictive_dashboard: PredictiveOverview

class HeatmapEntry(BaseModel):
    route_label: str
    origin: str
    destination: str
    occupancy: float
    avg_price: float
    demand: int
    demand_confidence: float
    capacity: int
    reserved: int
    geo_zone: str
    vehicle_count: int

class BalanceKpis(BaseModel):
    average_occupancy: float
    unmet_demand: int
    balance_score: int

class LoadFactor(BaseModel):
    trip_id: str
    origin: str
    destination: str
    departure_at: datetime
    capacity: int
    reserved: int
    price: float
    vehicle_id: Optional[str] = None
    plate_number: Optional[str] = None

class SimulationResult(BaseModel):
    horizon_days: int
    heatmap: List[HeatmapEntry]
    kpis: BalanceKpis
    demand_forecast: List[DemandForecastEntry]
    load_factors: List[LoadFactor]
    rules: List[Rule]
    suggestions: List[Suggestion]

class RecommendationsView(SimulationResult):
    stored_recommendations: List[Recommendation]
    latest_report: Optional[OptimizationReport] = None

class SavedRules(BaseModel):
    rules: List[Rule]
