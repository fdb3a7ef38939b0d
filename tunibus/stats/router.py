from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tunibus.auth.dependencies import require_admin
from tunibus.database import get_db
from tunibus.models import User
from tunibus.stats.dashboard_service import DashboardService
from tunibus.stats.monitoring_service import SystemMonitoringService
from tunibus.stats.schemas import Dashboard, SearchLog, StatsOverview, SystemHealth, TopSearch

router = APIRouter()


@router.get("/stats", response_model=StatsOverview)
def stats_overview(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Network KPIs: fill rate, punctuality, alerts and weekly series"""
    return DashboardService(db).kpis()


@router.get("/admin/dashboard", response_model=Dashboard)
def admin_dashboard(
    entity: str = Query("national"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return DashboardService(db).dashboard(entity)


@router.get("/search-analytics/recent", response_model=List[SearchLog])
def recent_searches(
    limit: int = Query(50, ge=1, le=200),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return DashboardService(db).recent_searches(limit)


@router.get("/search-analytics/top", response_model=List[TopSearch])
def top_searches(
    limit: int = Query(10, ge=1, le=50),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return DashboardService(db).top_searches(limit)


@router.get("/admin/system/health", response_model=SystemHealth)
def system_health(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return SystemMonitoringService(db).get_system_health()
