import logging
from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from tunibus.database import utcnow
from tunibus.models import Reservation, SearchLog, Trip, User, Vehicle
from tunibus.roles import DRIVER, normalize_role
from tunibus.trips.schemas import AdminTripCreate, AdminTripUpdate, TripCreate, TripUpdate
from tunibus.trips.search import parse_query

logger = logging.getLogger(__name__)

DRIVER_EDITABLE_FIELDS = {"status", "workflow_status", "notes"}
CLOSED_STATUSES = ("completed", "cancelled")


def day_bounds(day: date):
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def combine_day_time(day: date, hhmm: str) -> datetime:
    hours, minutes = (int(part) for part in hhmm.split(":"))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid time: {hhmm}")
    return datetime.combine(day, time(hours, minutes))


def status_for_workflow(workflow_status: Optional[str]) -> str:
    """Operational status implied by a dispatch workflow status"""
    if workflow_status == "completed":
        return "completed"
    if workflow_status == "confirmed":
        return "in_progress"
    return "scheduled"


class TripService:
    @staticmethod
    def get_trip_by_id(db: Session, trip_id: str) -> Optional[Trip]:
        return db.query(Trip).filter(Trip.id == trip_id).first()

    @staticmethod
    def search_trips(
        db: Session,
        origin: Optional[str] = None,
        destination: Optional[str] = None,
        travel_date: Optional[date] = None,
        user_id: Optional[str] = None,
        source: str = "web",
    ) -> List[Trip]:
        """Case-insensitive city search, optionally limited to one day, logged for analytics"""
        query = db.query(Trip)
        filtered = bool(origin or destination or travel_date)

        if origin:
            query = query.filter(Trip.origin.ilike(f"%{origin.strip()}%"))
        if destination:
            query = query.filter(Trip.destination.ilike(f"%{destination.strip()}%"))
        if travel_date:
            start, end = day_bounds(travel_date)
            query = query.filter(Trip.departure_at >= start, Trip.departure_at < end)

        if filtered:
            trips = query.order_by(Trip.departure_at.asc()).all()
        else:
            trips = query.order_by(Trip.departure_at.desc()).all()

        db.add(SearchLog(
            user_id=user_id,
            origin=origin,
            destination=destination,
            travel_date=travel_date.isoformat() if travel_date else None,
            result_count=len(trips),
            source=source,
        ))
        db.commit()
        return trips

    @staticmethod
    def natural_language_search(db: Session, q: str, user_id: Optional[str] = None, now: Optional[datetime] = None):
        if not q or not q.strip():
            raise ValueError("Query is required")

        detected = parse_query(q, now=now or utcnow())
        results = TripService.search_trips(
            db,
            origin=detected["origin"],
            destination=detected["destination"],
            travel_date=detected["date"],
            user_id=user_id,
            source="nlp",
        )
        return {"query": q, "detected": detected, "results": results}

    @staticmethod
    def _check_refs(db: Session, driver_id: Optional[str], vehicle_id: Optional[str]):
        if driver_id is not None:
            driver = db.query(User).filter(User.id == driver_id).first()
            if not driver or normalize_role(driver.role) != DRIVER:
                raise ValueError("Assigned driver does not exist")
        if vehicle_id is not None:
            if not db.query(Vehicle).filter(Vehicle.id == vehicle_id).first():
                raise ValueError("Assigned vehicle does not exist")

    @staticmethod
    def create_trip(db: Session, data: TripCreate) -> Trip:
        TripService._check_refs(db, data.driver_id, data.vehicle_id)
        values = data.model_dump(mode="python")
        values["price"] = Decimal(str(values["price"]))
        values["status"] = data.status.value
        values["category"] = data.category.value

        db_trip = Trip(**values)
        db.add(db_trip)
        db.commit()
        db.refresh(db_trip)
        logger.info("Trip %s created: %s -> %s", db_trip.id, db_trip.origin, db_trip.destination)
        return db_trip

    @staticmethod
    def apply_workflow(trip: Trip, workflow_status: str):
        """Move a trip through the dispatch workflow, keeping the operational status in step"""
        trip.workflow_status = workflow_status
        if workflow_status == "to_reassign":
            trip.driver_id = None
        trip.status = status_for_workflow(workflow_status)

    @staticmethod
    def update_trip(db: Session, trip_id: str, data: TripUpdate, actor: User) -> Optional[Trip]:
        """Partial update; drivers only touch trips they drive or may pick up, and only their status"""
        db_trip = TripService.get_trip_by_id(db, trip_id)
        if not db_trip:
            return None

        update_data = data.model_dump(mode="json", exclude_unset=True)
        is_driver = normalize_role(actor.role) == DRIVER
        if is_driver:
            if db_trip.driver_id not in (None, actor.id):
                raise PermissionError("Trip is assigned to another driver")
            forbidden = set(update_data) - DRIVER_EDITABLE_FIELDS
            if forbidden:
                raise PermissionError(f"Drivers cannot change: {', '.join(sorted(forbidden))}")
        else:
            TripService._check_refs(db, update_data.get("driver_id"), update_data.get("vehicle_id"))

        workflow_status = update_data.pop("workflow_status", None)
        if "price" in update_data and update_data["price"] is not None:
            update_data["price"] = Decimal(str(update_data["price"]))
        for field in ("departure_at", "arrival_at"):
            if field in update_data:
                update_data[field] = getattr(data, field)

        for field, value in update_data.items():
            setattr(db_trip, field, value)

        if workflow_status:
            TripService.apply_workflow(db_trip, workflow_status)
            if is_driver and workflow_status == "confirmed" and db_trip.driver_id is None:
                db_trip.driver_id = actor.id

        if db_trip.arrival_at <= db_trip.departure_at:
            raise ValueError("arrival_at must be after departure_at")

        db.commit()
        db.refresh(db_trip)
        return db_trip

    @staticmethod
    def delete_trip(db: Session, trip_id: str) -> bool:
        db_trip = TripService.get_trip_by_id(db, trip_id)
        if not db_trip:
            return False
        db.delete(db_trip)
        db.commit()
        return True

    # ---------------------------
    # Admin dispatch
    # ---------------------------
    @staticmethod
    def list_admin_trips(
        db: Session,
        driver_id: Optional[str] = None,
        day: Optional[date] = None,
        workflow_status: Optional[str] = None,
    ) -> List[Trip]:
        query = db.query(Trip)
        if driver_id:
            query = query.filter(Trip.driver_id == driver_id)
        if day:
            start, end = day_bounds(day)
            query = query.filter(Trip.departure_at >= start, Trip.departure_at < end)
        if workflow_status:
            query = query.filter(Trip.workflow_status == workflow_status)
        return query.order_by(Trip.departure_at.asc()).all()

    @staticmethod
    def _schedule_times(day: date, start_time: str, end_time: str):
        departure = combine_day_time(day, start_time)
        arrival = combine_day_time(day, end_time)
        if arrival <= departure:
            # overnight run
            arrival += timedelta(days=1)
        return departure, arrival

    @staticmethod
    def create_admin_trip(db: Session, data: AdminTripCreate) -> Trip:
        TripService._check_refs(db, data.driver_id, data.vehicle_id)
        departure, arrival = TripService._schedule_times(data.date, data.start_time, data.end_time)

        db_trip = Trip(
            origin=data.start_location,
            destination=data.end_location,
            departure_at=departure,
            arrival_at=arrival,
            price=Decimal(str(data.price)),
            seats_available=data.seats,
            distance_km=data.distance_km,
            driver_id=data.driver_id,
            vehicle_id=data.vehicle_id,
            category=data.category.value,
            notes=data.notes,
        )
        TripService.apply_workflow(db_trip, data.status.value)

        db.add(db_trip)
        db.commit()
        db.refresh(db_trip)
        logger.info("Dispatch trip %s created for %s", db_trip.id, data.date)
        return db_trip

    @staticmethod
    def update_admin_trip(db: Session, trip_id: str, data: AdminTripUpdate) -> Optional[Trip]:
        db_trip = TripService.get_trip_by_id(db, trip_id)
        if not db_trip:
            return None

        update_data = data.model_dump(exclude_unset=True)
        TripService._check_refs(db, update_data.get("driver_id"), update_data.get("vehicle_id"))

        if {"date", "start_time", "end_time"} & update_data.keys():
            day = update_data.get("date") or db_trip.departure_at.date()
            start_time = update_data.get("start_time") or db_trip.departure_at.strftime("%H:%M")
            end_time = update_data.get("end_time") or db_trip.arrival_at.strftime("%H:%M")
            db_trip.departure_at, db_trip.arrival_at = TripService._schedule_times(day, start_time, end_time)

        field_map = {
            "start_location": "origin",
            "end_location": "destination",
            "seats": "seats_available",
            "notes": "notes",
            "distance_km": "distance_km",
            "driver_id": "driver_id",
            "vehicle_id": "vehicle_id",
        }
        for key, attr in field_map.items():
            if key in update_data:
                setattr(db_trip, attr, update_data[key])
        if update_data.get("price") is not None:
            db_trip.price = Decimal(str(update_data["price"]))
        if update_data.get("category") is not None:
            db_trip.category = update_data["category"].value
        if update_data.get("status") is not None:
            TripService.apply_workflow(db_trip, update_data["status"].value)

        db.commit()
        db.refresh(db_trip)
        return db_trip

    # ---------------------------
    # Driver views
    # ---------------------------
    @staticmethod
    def driver_trips(db: Session, driver_id: str) -> List[Trip]:
        """Trips assigned to the driver plus open trips nobody has taken yet"""
        return (
            db.query(Trip)
            .filter(or_(Trip.driver_id == driver_id, Trip.driver_id.is_(None)))
            .filter(Trip.status != "cancelled")
            .order_by(Trip.departure_at.asc())
            .all()
        )

    @staticmethod
    def driver_calendar(db: Session, driver_id: str, now: Optional[datetime] = None) -> Dict:
        now = now or utcnow()
        trips = (
            db.query(Trip)
            .filter(Trip.driver_id == driver_id)
            .order_by(Trip.departure_at.asc())
            .all()
        )
        by_date: Dict[str, List[Trip]] = OrderedDict()
        for trip in trips:
            by_date.setdefault(trip.departure_at.date().isoformat(), []).append(trip)

        return {
            "trips": trips,
            "by_date": by_date,
            "counts": {
                "total": len(trips),
                "upcoming": sum(1 for t in trips if t.departure_at >= now and t.status not in CLOSED_STATUSES),
                "completed": sum(1 for t in trips if t.status == "completed"),
            },
        }

    @staticmethod
    def trip_reservations(db: Session, trip_id: str) -> List[dict]:
        reservations = (
            db.query(Reservation)
            .filter(Reservation.trip_id == trip_id)
            .order_by(Reservation.booked_at.asc())
            .all()
        )
        return [
            {
                "id": r.id,
                "reference": r.reference,
                "client_id": r.client_id,
                "client_name": r.client.full_name if r.client else None,
                "seat_count": r.seat_count,
                "seat_number": r.seat_number,
                "status": r.status,
                "checked_in": bool(r.checked_in),
                "checked_in_at": r.checked_in_at,
            }
            for r in reservations
        ]
