import logging
import time
from typing import Any, Dict, List

import psutil
from sqlalchemy import text
from sqlalchemy.orm import Session

from tunibus.database import utcnow

logger = logging.getLogger(__name__)

ALERT_THRESHOLDS = {
    "cpu_usage": {"warning": 70, "critical": 90},
    "memory_usage": {"warning": 80, "critical": 95},
    "disk_usage": {"warning": 85, "critical": 95},
}


def grade(metric: str, value: float) -> str:
    thresholds = ALERT_THRESHOLDS[metric]
    if value >= thresholds["critical"]:
        return "critical"
    if value >= thresholds["warning"]:
        return "warning"
    return "healthy"


class SystemMonitoringService:
    """Host and database health for the admin console"""

    def __init__(self, db: Session):
        self.db = db

    def _collect_metrics(self) -> Dict[str, float]:
        return {
            "cpu_usage": psutil.cpu_percent(interval=None),
            "memory_usage": psutil.virtual_memory().percent,
            "disk_usage": psutil.disk_usage("/").percent,
        }

    def _check_database(self) -> Dict[str, Any]:
        started = time.perf_counter()
        try:
            self.db.execute(text("SELECT 1"))
        except Exception as e:
            logger.error("Database health check failed: %s", e)
            return {"component": "database", "status": "critical", "message": str(e), "response_time_ms": None}
        elapsed = (time.perf_counter() - started) * 1000
        return {
            "component": "database",
            "status": "healthy",
            "message": "Database reachable",
            "response_time_ms": round(elapsed, 2),
        }

    def get_system_health(self) -> Dict[str, Any]:
        metrics = self._collect_metrics()
        components: List[Dict[str, Any]] = [self._check_database()]
        alerts = []
        for metric, value in metrics.items():
            status = grade(metric, value)
            components.append({
                "component": metric,
                "status": status,
                "message": f"{metric.replace('_', ' ')} is {value:.1f}%",
                "response_time_ms": None,
            })
            if status != "healthy":
                alerts.append({"severity": status, "component": metric, "value": value})

        statuses = {c["status"] for c in components}
        if "critical" in statuses:
            overall = "critical"
        elif "warning" in statuses:
            overall = "warning"
        else:
            overall = "healthy"
        if overall != "healthy":
            logger.warning("System health is %s: %s", overall, alerts)

        return {
            "overall_status": overall,
            "checked_at": utcnow(),
            "metrics": metrics,
            "components": components,
            "alerts": alerts,
        }
