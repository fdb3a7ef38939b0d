"""
Tracking Module

Live vehicle positions over the /ws/tracking websocket, the per-trip
driver/passenger chat on /ws/chat, and a REST snapshot of the last
known position.
"""

from .router import router, ws_router
from .websocket import ChatManager, TrackingManager, chat_manager, tracking_manager

__all__ = ["router", "ws_router", "TrackingManager", "ChatManager", "tracking_manager", "chat_manager"]
