"""
Matrix Board status API - read-only REST endpoints

- /api/health: liveness
- /api/status: driver connection, slot occupancy, refresh statistics
- /api/frame: last image written to the panel

The API never mutates applets; clients do that over the TCP protocol.
"""

import logging
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel

logger = logging.getLogger(__name__)

router = APIRouter()


def get_server(request: Request):
    server = getattr(request.app.state, "server", None)
    if server is None:
        raise HTTPException(status_code=503, detail="Server not ready")
    return server


class SlotInfo(BaseModel):
    slot: int
    occupied: bool
    separator: Optional[str] = None


class RefreshInfo(BaseModel):
    running: bool
    period: float
    target_fps: Optional[float] = None
    fps_actual: float
    frames_written: int
    write_errors: int


class ServerStatus(BaseModel):
    connected: bool
    clients: int
    slots: List[SlotInfo]
    refresh: RefreshInfo


class FrameResponse(BaseModel):
    rows: int
    cols: int
    brightness: List[List[int]]


@router.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": time.time()}


@router.get("/status", response_model=ServerStatus)
async def get_status(server=Depends(get_server)):
    """Current slot occupancy and refresh statistics."""
    if server.slot_table is None or server.compositor is None:
        raise HTTPException(status_code=503, detail="Server components not initialized")

    stats = server.compositor.get_stats()
    return ServerStatus(
        connected=server.driver.is_connected() if server.driver else False,
        clients=server.board_server.active_connections if server.board_server else 0,
        slots=[SlotInfo(**entry) for entry in server.slot_table.describe()],
        refresh=RefreshInfo(
            running=stats["running"],
            period=stats["period"],
            target_fps=stats["target_fps"],
            fps_actual=stats["fps_actual"],
            frames_written=stats["stats"]["frames_written"],
            write_errors=stats["stats"]["write_errors"],
        ),
    )


@router.get("/frame", response_model=FrameResponse)
async def get_frame(server=Depends(get_server)):
    """Last composed panel image."""
    if server.compositor is None:
        raise HTTPException(status_code=503, detail="Compositor not initialized")
    frame = server.compositor.last_frame
    return FrameResponse(
        rows=frame.shape[0], cols=frame.shape[1], brightness=frame.tolist()
    )


def create_status_app(server) -> FastAPI:
    """
    Build the status API for a running server.

    Args:
        server: Object exposing slot_table, compositor, driver and board_server
    """
    app = FastAPI(
        title="LED Matrix Board",
        description="Read-only status for the applet board server",
        version="0.1.0",
    )
    app.state.server = server
    app.include_router(router, prefix="/api")
    return app
