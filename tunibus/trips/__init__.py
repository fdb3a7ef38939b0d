"""
Trips Module

Trip catalogue and dispatch for the TuniBus network. It includes:

- Public trip search by city and day, with every search logged for analytics
- Natural-language search ("de Tunis à Sousse demain")
- Trip administration and the dispatch workflow (waiting driver confirmation,
  confirmed, to reassign, completed) mapped onto the operational status
- Driver views: assigned and open trips, calendar grouped by day
- Static map of the intercity corridors

Key Components:
- service.py: TripService with search, CRUD, dispatch and driver views
- search.py: free-text query parsing
- geo.py: intercity corridor catalogue
- router.py: FastAPI endpoints
- schemas.py: Pydantic models for trips and dispatch payloads
"""

from .router import router
from .service import TripService
from .search import parse_query
from .schemas import Trip, TripCreate, TripUpdate, TripStatus, WorkflowStatus, TripCategory

__all__ = [
    "router",
    "TripService",
    "parse_query",
    "Trip",
    "TripCreate",
    "TripUpdate",
    "TripStatus",
    "WorkflowStatus",
    "TripCategory",
]
