"""
Optimization Module

Predictive insights for the back office (demand forecast, pricing, fleet
maintenance risk) and bus reallocation suggestions driven by editable
optimization rules.
"""

from .router import router
from .service import OptimizationService, run_optimization_scheduler

__all__ = ["router", "OptimizationService", "run_optimization_scheduler"]
