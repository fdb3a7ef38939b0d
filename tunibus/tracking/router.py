from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, status

from tunibus.auth.dependencies import get_current_user
from tunibus.models import User
from tunibus.tracking.schemas import TrackingState
from tunibus.tracking.websocket import chat_endpoint, tracking_endpoint, tracking_manager

router = APIRouter()
ws_router = APIRouter()


@router.get("/{trip_id}", response_model=TrackingState)
def get_tracking_state(trip_id: str, current_user: User = Depends(get_current_user)):
    """Last known position of the vehicle serving a trip"""
    state = tracking_manager.get_state(trip_id)
    if not state:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No position for this trip")
    return state


@ws_router.websocket("/ws/tracking")
async def websocket_tracking(websocket: WebSocket):
    await tracking_endpoint(websocket)


@ws_router.websocket("/ws/chat")
async def websocket_chat(websocket: WebSocket, trip_id: str = Query(...)):
    await chat_endpoint(websocket, trip_id)
