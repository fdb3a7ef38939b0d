"""
Incidents Module

Road incidents reported by drivers (traffic, breakdowns, accidents,
emergencies), their follow-up by the back office, and driver activity
figures.
"""

from .router import router
from .service import IncidentService

__all__ = ["router", "IncidentService"]
