"""Live check-result stream for the dashboard."""
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..services.websocket_manager import websocket_manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["live"])


@router.websocket("/ws")
async def live_updates(websocket: WebSocket):
    """Register a dashboard client; results are pushed by the scheduler.

    Anything the client sends is read and ignored so a closed socket is noticed.
    """
    await websocket_manager.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Live client went away")
    finally:
        await websocket_manager.disconnect(websocket)
