import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tunibus.fleet.schemas import VehicleCreate, VehicleUpdate
from tunibus.models import User, Vehicle
from tunibus.roles import DRIVER, normalize_role

logger = logging.getLogger(__name__)


class VehicleService:
    @staticmethod
    def get_vehicles(db: Session) -> List[Vehicle]:
        return db.query(Vehicle).order_by(Vehicle.plate_number).all()

    @staticmethod
    def get_vehicle_by_id(db: Session, vehicle_id: str) -> Optional[Vehicle]:
        return db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()

    @staticmethod
    def _check_driver(db: Session, driver_id: Optional[str]):
        if driver_id is None:
            return
        driver = db.query(User).filter(User.id == driver_id).first()
        if not driver or normalize_role(driver.role) != DRIVER:
            raise ValueError("Assigned driver does not exist")

    @staticmethod
    def create_vehicle(db: Session, data: VehicleCreate) -> Vehicle:
        VehicleService._check_driver(db, data.driver_id)
        db_vehicle = Vehicle(**data.model_dump(mode="json"))
        try:
            db.add(db_vehicle)
            db.commit()
            db.refresh(db_vehicle)
        except IntegrityError:
            db.rollback()
            raise ValueError("A vehicle with this plate number already exists")
        logger.info("Vehicle %s registered", db_vehicle.plate_number)
        return db_vehicle

    @staticmethod
    def update_vehicle(db: Session, vehicle_id: str, data: VehicleUpdate) -> Optional[Vehicle]:
        db_vehicle = VehicleService.get_vehicle_by_id(db, vehicle_id)
        if not db_vehicle:
            return None

        update_data = data.model_dump(mode="json", exclude_unset=True)
        if "driver_id" in update_data:
            VehicleService._check_driver(db, update_data["driver_id"])
        for field, value in update_data.items():
            setattr(db_vehicle, field, value)

        try:
            db.commit()
            db.refresh(db_vehicle)
        except IntegrityError:
            db.rollback()
            raise ValueError("A vehicle with this plate number already exists")
        return db_vehicle

    @staticmethod
    def delete_vehicle(db: Session, vehicle_id: str) -> bool:
        db_vehicle = VehicleService.get_vehicle_by_id(db, vehicle_id)
        if not db_vehicle:
            return False
        db.delete(db_vehicle)
        db.commit()
        return True
