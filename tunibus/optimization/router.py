from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from tunibus.auth.dependencies import require_admin
from tunibus.database import get_db
from tunibus.models import User
from tunibus.optimization.schemas import (
    OptimizationReport, Recommendation, RecommendationStatusUpdate, RecommendationsView, RulesSave, RunRequest,
    SavedRules, SimulationRequest, SimulationResult
)
from tunibus.optimization.service import OptimizationService

router = APIRouter()


def _horizon(value: Optional[int], low: int, default: int = 7) -> int:
    return max(low, min(14, value)) if value is not None else default


@router.get("/ai/predictive-insights", response_model=OptimizationReport)
def predictive_insights(
    horizon: Optional[int] = Query(None),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Demand forecast, pricing, maintenance risk and scenarios over 5 to 14 days"""
    return OptimizationService(db).predictive_report(_horizon(horizon, 5))


@router.get("/optimization/recommendations", response_model=RecommendationsView)
def recommendations(
    status_filter: Optional[str] = Query(None, alias="status"),
    route: Optional[str] = Query(None),
    horizon_days: Optional[int] = Query(None),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Route heatmap, balance KPIs, live suggestions and stored recommendations.

    status takes a comma separated list.
    """
    statuses = [s.strip() for s in status_filter.split(",") if s.strip()] if status_filter else None
    return OptimizationService(db).recommendations(_horizon(horizon_days, 3), statuses, route)


@router.post("/optimization/simulate", response_model=SimulationResult)
def simulate(request: SimulationRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return OptimizationService(db).simulate(_horizon(request.horizon_days, 3), request.overrides)


@router.post("/optimization/apply", response_model=SavedRules)
def apply_rules(request: RulesSave, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return {"rules": OptimizationService(db).save_rules(request.rules)}


@router.post("/optimization/recommendations/{recommendation_id}/status", response_model=Recommendation)
def update_recommendation_status(
    recommendation_id: str,
    request: RecommendationStatusUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    recommendation = OptimizationService(db).update_recommendation_status(recommendation_id, request, admin.id)
    if not recommendation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recommendation not found")
    return recommendation


@router.post("/optimization/run", response_model=OptimizationReport)
def run_cycle(request: Optional[RunRequest] = None, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Run an optimization cycle now and store its suggestions"""
    horizon_days = request.horizon_days if request and request.horizon_days else 7
    return OptimizationService(db).run_cycle(horizon_days)
