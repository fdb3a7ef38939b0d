"""
Travel Assistant Module

Deterministic recommendations for the assistant panel, derived from a
traveller's reservations, recent searches and loyalty balance.

Key Components:
- engine.py: pure functions computing habits, behaviour profile, actions and suggestions
- service.py: AssistantService loading the data the engine needs
- router.py: /ai/assistant endpoint
"""

from .router import router
from .service import AssistantService
from .engine import build_recommendations

__all__ = ["router", "AssistantService", "build_recommendations"]
