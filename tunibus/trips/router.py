from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from tunibus.auth.dependencies import get_optional_user, require_admin, require_roles, require_staff
from tunibus.database import get_db
from tunibus.models import User
from tunibus.roles import DRIVER
from tunibus.trips.geo import get_routes
from tunibus.trips.schemas import (
    Trip, TripCreate, TripUpdate, AdminTripCreate, AdminTripUpdate, WorkflowStatus,
    DriverCalendar, NlpSearchResponse, GeoRoute, TripReservation
)
from tunibus.trips.service import TripService

router = APIRouter()

require_driver = require_roles(DRIVER)


# Public search
@router.get("/trips", response_model=List[Trip], tags=["Trips"])
def search_trips(
    origin: Optional[str] = Query(None, description="Departure city"),
    destination: Optional[str] = Query(None, description="Arrival city"),
    travel_date: Optional[date] = Query(None, alias="date", description="Day of departure"),
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """Search trips by city and day; without filters every trip is listed, newest first"""
    return TripService.search_trips(
        db,
        origin=origin,
        destination=destination,
        travel_date=travel_date,
        user_id=current_user.id if current_user else None,
    )


@router.get("/search/nlp", response_model=NlpSearchResponse, tags=["Trips"])
def natural_language_search(
    q: str = Query("", description="Free-text request, e.g. 'de Tunis à Sousse demain'"),
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    try:
        return TripService.natural_language_search(db, q, user_id=current_user.id if current_user else None)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/geo/routes", response_model=List[GeoRoute], tags=["Trips"])
def network_routes():
    """Intercity corridors for the network map"""
    return get_routes()


@router.get("/trips/{trip_id}", response_model=Trip, tags=["Trips"])
def get_trip(trip_id: str, db: Session = Depends(get_db)):
    trip = TripService.get_trip_by_id(db, trip_id)
    if not trip:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip not found")
    return trip


@router.post("/trips", response_model=Trip, status_code=status.HTTP_201_CREATED, tags=["Trips"])
def create_trip(data: TripCreate, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return TripService.create_trip(db, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/trips/{trip_id}", response_model=Trip, tags=["Trips"])
def update_trip(
    trip_id: str,
    data: TripUpdate,
    current_user: User = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """Update a trip; drivers may only move its status along"""
    try:
        trip = TripService.update_trip(db, trip_id, data, current_user)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not trip:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip not found")
    return trip


@router.delete("/trips/{trip_id}", tags=["Trips"])
def delete_trip(trip_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    if not TripService.delete_trip(db, trip_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip not found")
    return {"success": True}


@router.get("/trips/{trip_id}/reservations", response_model=List[TripReservation], tags=["Trips"])
def trip_reservations(trip_id: str, current_user: User = Depends(require_staff), db: Session = Depends(get_db)):
    """Passenger manifest of a trip"""
    if not TripService.get_trip_by_id(db, trip_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip not found")
    return TripService.trip_reservations(db, trip_id)


# Admin dispatch
@router.get("/admin/trips", response_model=List[Trip], tags=["Dispatch"])
def list_admin_trips(
    driver_id: Optional[str] = Query(None),
    day: Optional[date] = Query(None, alias="date"),
    workflow_status: Optional[WorkflowStatus] = Query(None, alias="status"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return TripService.list_admin_trips(
        db,
        driver_id=driver_id,
        day=day,
        workflow_status=workflow_status.value if workflow_status else None,
    )


@router.post("/admin/trips", response_model=Trip, status_code=status.HTTP_201_CREATED, tags=["Dispatch"])
def create_admin_trip(data: AdminTripCreate, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Schedule a trip from a day, start/end times and locations"""
    try:
        return TripService.create_admin_trip(db, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/admin/trips/{trip_id}", response_model=Trip, tags=["Dispatch"])
def update_admin_trip(
    trip_id: str,
    data: AdminTripUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        trip = TripService.update_admin_trip(db, trip_id, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not trip:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip not found")
    return trip


@router.delete("/admin/trips/{trip_id}", tags=["Dispatch"])
def delete_admin_trip(trip_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    if not TripService.delete_trip(db, trip_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip not found")
    return {"success": True}


# Driver views
@router.get("/driver/trips", response_model=List[Trip], tags=["Driver"])
def driver_trips(driver: User = Depends(require_driver), db: Session = Depends(get_db)):
    """Own trips plus unassigned ones the driver can pick up"""
    return TripService.driver_trips(db, driver.id)


@router.get("/driver/calendar", response_model=DriverCalendar, tags=["Driver"])
def driver_calendar(driver: User = Depends(require_driver), db: Session = Depends(get_db)):
    return TripService.driver_calendar(db, driver.id)
