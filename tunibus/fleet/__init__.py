"""
Fleet Module

Vehicle registry for the bus fleet: plate numbers, capacity, operational
status and the driver each vehicle is assigned to.
"""

from .router import router
from .service import VehicleService
from .schemas import Vehicle, VehicleCreate, VehicleUpdate, VehicleStatus

__all__ = ["router", "VehicleService", "Vehicle", "VehicleCreate", "VehicleUpdate", "VehicleStatus"]
