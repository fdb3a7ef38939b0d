import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from tunibus.database import utcnow
from tunibus.incidents.schemas import IncidentCreate
from tunibus.models import Incident, Trip, User
from tunibus.notifications.service import NotificationService
from tunibus.roles import ADMIN_ROLES

logger = logging.getLogger(__name__)


class IncidentService:
    @staticmethod
    def list_for_driver(db: Session, driver_id: str) -> List[Incident]:
        return (
            db.query(Incident)
            .filter(Incident.driver_id == driver_id)
            .order_by(Incident.created_at.desc())
            .all()
        )

    @staticmethod
    def list_all(db: Session, status: Optional[str] = None, limit: int = 100) -> List[Incident]:
        query = db.query(Incident)
        if status:
            query = query.filter(Incident.status == status)
        return query.order_by(Incident.created_at.desc()).limit(limit).all()

    @staticmethod
    def report(db: Session, driver: User, data: IncidentCreate) -> Incident:
        """Record an incident; critical ones alert every administrator"""
        if data.trip_id and not db.query(Trip).filter(Trip.id == data.trip_id).first():
            raise ValueError("Trip not found")

        incident = Incident(
            driver_id=driver.id,
            trip_id=data.trip_id,
            incident_type=data.incident_type.value,
            description=data.description,
            severity=data.severity.value,
            status="open",
        )
        db.add(incident)
        db.flush()

        if incident.severity == "critical":
            admins = db.query(User).filter(User.role.in_(ADMIN_ROLES)).all()
            for admin in admins:
                NotificationService.dispatch_to_user(db, admin.id, {
                    "title": f"Critical incident: {incident.incident_type}",
                    "body": f"{driver.full_name}: {incident.description}",
                    "category": "alert",
                    "details": {"incident_id": incident.id, "trip_id": incident.trip_id},
                }, priority="high")
            logger.warning("Critical incident %s reported by driver %s", incident.id, driver.id)

        db.commit()
        db.refresh(incident)
        return incident

    @staticmethod
    def update_status(db: Session, incident_id: str, status: str) -> Optional[Incident]:
        incident = db.query(Incident).filter(Incident.id == incident_id).first()
        if not incident:
            return None
        incident.status = status
        db.commit()
        db.refresh(incident)
        return incident

    @staticmethod
    def driver_stats(db: Session, driver_id: str, now: Optional[datetime] = None) -> dict:
        now = now or utcnow()
        trips = db.query(Trip).filter(Trip.driver_id == driver_id)
        completed = trips.filter(Trip.status == "completed")
        distance = completed.with_entities(func.coalesce(func.sum(Trip.distance_km), 0)).scalar()
        return {
            "total_trips": trips.count(),
            "upcoming_trips": trips.filter(
                Trip.departure_at >= now, Trip.status.notin_(("completed", "cancelled"))
            ).count(),
            "completed_trips": completed.count(),
            "distance_km": float(distance or 0),
            "open_incidents": db.query(Incident).filter(
                Incident.driver_id == driver_id, Incident.status != "resolved"
            ).count(),
        }
