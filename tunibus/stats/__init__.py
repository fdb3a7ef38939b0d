"""
Statistics Module

Back-office dashboard, network KPIs, search analytics and host health.
"""

from .router import router
from .dashboard_service import DashboardService
from .monitoring_service import SystemMonitoringService

__all__ = ["router", "DashboardService", "SystemMonitoringService"]
