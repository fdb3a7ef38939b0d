from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from tunibus.auth.dependencies import get_current_user, require_admin
from tunibus.database import get_db
from tunibus.fleet.schemas import Vehicle, VehicleCreate, VehicleUpdate
from tunibus.fleet.service import VehicleService
from tunibus.models import User

router = APIRouter()


@router.get("", response_model=List[Vehicle])
def get_vehicles(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Get all vehicles of the fleet"""
    return VehicleService.get_vehicles(db)


@router.get("/{vehicle_id}", response_model=Vehicle)
def get_vehicle(vehicle_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    vehicle = VehicleService.get_vehicle_by_id(db, vehicle_id)
    if not vehicle:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vehicle not found")
    return vehicle


@router.post("", response_model=Vehicle, status_code=status.HTTP_201_CREATED)
def create_vehicle(data: VehicleCreate, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return VehicleService.create_vehicle(db, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/{vehicle_id}", response_model=Vehicle)
def update_vehicle(
    vehicle_id: str,
    data: VehicleUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        vehicle = VehicleService.update_vehicle(db, vehicle_id, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not vehicle:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vehicle not found")
    return vehicle


@router.delete("/{vehicle_id}")
def delete_vehicle(vehicle_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    if not VehicleService.delete_vehicle(db, vehicle_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vehicle not found")
    return {"success": True}
