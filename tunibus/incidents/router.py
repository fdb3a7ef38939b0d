from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from tunibus.auth.dependencies import require_admin, require_staff
from tunibus.database import get_db
from tunibus.incidents.schemas import Incident, IncidentCreate, IncidentStatus, IncidentStatusUpdate, DriverStats
from tunibus.incidents.service import IncidentService
from tunibus.models import User

router = APIRouter()


@router.get("/driver/incidents", response_model=List[Incident])
def my_incidents(driver: User = Depends(require_staff), db: Session = Depends(get_db)):
    return IncidentService.list_for_driver(db, driver.id)


@router.post("/driver/incidents", response_model=Incident, status_code=status.HTTP_201_CREATED)
def report_incident(data: IncidentCreate, driver: User = Depends(require_staff), db: Session = Depends(get_db)):
    """Report a road incident"""
    try:
        return IncidentService.report(db, driver, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/driver/stats", response_model=DriverStats)
def driver_stats(driver: User = Depends(require_staff), db: Session = Depends(get_db)):
    return IncidentService.driver_stats(db, driver.id)


@router.get("/admin/incidents", response_model=List[Incident])
def list_incidents(
    incident_status: Optional[IncidentStatus] = Query(None, alias="status"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return IncidentService.list_all(db, status=incident_status.value if incident_status else None)


@router.patch("/admin/incidents/{incident_id}", response_model=Incident)
def update_incident(
    incident_id: str,
    data: IncidentStatusUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    incident = IncidentService.update_status(db, incident_id, data.status.value)
    if not incident:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Incident not found")
    return incident
