import asyncio
import json
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set

from fastapi import WebSocket, WebSocketDisconnect

from tunibus.config import settings
from tunibus.database import utcnow

logger = logging.getLogger(__name__)

SWEEP_INTERVAL_SECONDS = 30
BANNED_WORDS = ["injure", "insulte", "haine"]


def _coordinate(value) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


class TrackingManager:
    """Last known vehicle position per trip, relayed to every tracking client"""

    def __init__(self, stale_after: Optional[int] = None):
        self.active_connections: List[WebSocket] = []
        self.states: Dict[str, dict] = {}
        self._updated_at: Dict[str, datetime] = {}
        self.stale_after = timedelta(seconds=stale_after or settings.TRACKING_STALE_SECONDS)

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def send_personal_message(self, websocket: WebSocket, message: dict):
        try:
            await websocket.send_text(json.dumps(message))
        except (WebSocketDisconnect, RuntimeError):
            self.disconnect(websocket)

    async def broadcast(self, message: dict):
        message_text = json.dumps(message)
        disconnected = []
        for connection in list(self.active_connections):
            try:
                await connection.send_text(message_text)
            except (WebSocketDisconnect, RuntimeError):
                disconnected.append(connection)
        for connection in disconnected:
            self.disconnect(connection)

    def update(self, message: dict, now: Optional[datetime] = None) -> dict:
        """Validate and store a position update; raises ValueError on a bad payload"""
        trip_id = message.get("tripId")
        lat = _coordinate(message.get("lat"))
        lng = _coordinate(message.get("lng"))
        if not trip_id or lat is None or lng is None:
            raise ValueError("tripId, lat and lng are required")
        if not -90 <= lat <= 90 or not -180 <= lng <= 180:
            raise ValueError("Coordinates out of range")

        now = now or utcnow()
        state = {
            "tripId": str(trip_id),
            "lat": lat,
            "lng": lng,
            "speed": _coordinate(message.get("speed")),
            "eta": message.get("eta"),
            "updatedAt": now.isoformat(),
        }
        self.states[state["tripId"]] = state
        self._updated_at[state["tripId"]] = now
        return state

    def get_state(self, trip_id: str) -> Optional[dict]:
        return self.states.get(trip_id)

    def evict_stale(self, now: Optional[datetime] = None) -> List[str]:
        """Drop states not refreshed within the staleness window, returning their trip ids"""
        now = now or utcnow()
        stale = [trip_id for trip_id, ts in self._updated_at.items() if now - ts > self.stale_after]
        for trip_id in stale:
            self.states.pop(trip_id, None)
            self._updated_at.pop(trip_id, None)
        if stale:
            logger.info("Evicted %d stale tracking states", len(stale))
        return stale

    async def sweep(self, now: Optional[datetime] = None):
        for trip_id in self.evict_stale(now):
            await self.broadcast({"type": "state", "tripId": trip_id, "state": None})

    async def run_sweeper(self, interval: int = SWEEP_INTERVAL_SECONDS):
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Tracking sweep failed")

    async def handle(self, websocket: WebSocket, data: str):
        try:
            message = json.loads(data)
        except json.JSONDecodeError:
            await self.send_personal_message(websocket, {"type": "error", "message": "Invalid JSON"})
            return
        if not isinstance(message, dict):
            await self.send_personal_message(websocket, {"type": "error", "message": "Invalid message"})
            return

        kind = message.get("type")
        if kind == "update":
            try:
                state = self.update(message)
            except ValueError as e:
                await self.send_personal_message(websocket, {"type": "error", "message": str(e)})
                return
            await self.broadcast({"type": "state", **state})
        elif kind == "request-state":
            state = self.get_state(str(message.get("tripId") or ""))
            if state:
                await self.send_personal_message(websocket, {"type": "state", **state})
        elif kind == "ping":
            await self.send_personal_message(websocket, {"type": "pong", "timestamp": utcnow().isoformat()})
        else:
            await self.send_personal_message(websocket, {"type": "error", "message": f"Unknown message type: {kind}"})


class ChatManager:
    """Per-trip chat rooms between the driver and passengers"""

    def __init__(self, banned_words: Optional[List[str]] = None):
        self.rooms: Dict[str, Set[WebSocket]] = {}
        self.banned_words = [w.lower() for w in (banned_words or BANNED_WORDS)]

    async def connect(self, websocket: WebSocket, trip_id: str):
        await websocket.accept()
        self.rooms.setdefault(trip_id, set()).add(websocket)

    def disconnect(self, websocket: WebSocket, trip_id: str):
        room = self.rooms.get(trip_id)
        if room is None:
            return
        room.discard(websocket)
        if not room:
            del self.rooms[trip_id]

    def is_allowed(self, text: str) -> bool:
        lowered = text.lower()
        return not any(word in lowered for word in self.banned_words)

    async def broadcast(self, trip_id: str, message: dict):
        message_text = json.dumps(message)
        for connection in list(self.rooms.get(trip_id, ())):
            try:
                await connection.send_text(message_text)
            except (WebSocketDisconnect, RuntimeError):
                self.disconnect(connection, trip_id)

    async def handle(self, websocket: WebSocket, trip_id: str, data: str):
        try:
            message = json.loads(data)
        except json.JSONDecodeError:
            message = {"text": data}
        if not isinstance(message, dict):
            message = {"text": str(message)}

        text = str(message.get("text") or message.get("message") or "").strip()
        if not text:
            return
        if not self.is_allowed(text):
            logger.info("Chat message refused by moderation on trip %s", trip_id)
            await websocket.send_text(json.dumps({
                "type": "moderation",
                "message": "Message refused: inappropriate content",
            }))
            return

        await self.broadcast(trip_id, {
            "type": "message",
            "tripId": trip_id,
            "author": message.get("author") or "anonymous",
            "role": message.get("role"),
            "text": text,
            "timestamp": utcnow().isoformat(),
        })


tracking_manager = TrackingManager()
chat_manager = ChatManager()


async def tracking_endpoint(websocket: WebSocket):
    await tracking_manager.connect(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            await tracking_manager.handle(websocket, data)
    except WebSocketDisconnect:
        tracking_manager.disconnect(websocket)


async def chat_endpoint(websocket: WebSocket, trip_id: str):
    await chat_manager.connect(websocket, trip_id)
    try:
        while True:
            data = await websocket.receive_text()
            await chat_manager.handle(websocket, trip_id, data)
    except WebSocketDisconnect:
        chat_manager.disconnect(websocket, trip_id)
