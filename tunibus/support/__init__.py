"""
Support Module

Customer support desk: tickets with threaded messages between travellers
and agents, resolution and satisfaction feedback, a searchable knowledge
base and a help assistant answering from it.
"""

from .router import router
from .service import SupportService

__all__ = ["router", "SupportService"]
