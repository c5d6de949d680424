"""Room endpoints.

Endpoints:
    POST /api/rooms: Create a room owned by the caller
    GET /api/rooms/{room_id}: Room metadata (404 unknown, 410 expired)
    GET /api/rooms/{room_id}/stats: Submission totals, creator only
"""
import logging

from fastapi import APIRouter, Depends

from ..identity import request_identity
from ..state import CollectorState, get_state
from .schemas import CreateRoomResponse, GetRoomResponse, RoomInfo, RoomStatsResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rooms", tags=["rooms"])


@router.post("", response_model=CreateRoomResponse)
def create_room(
    identity: str = Depends(request_identity),
    state: CollectorState = Depends(get_state),
) -> CreateRoomResponse:
    """Create a new room that expires after the retention window."""
    room = state.room_service.create_room(identity)
    return CreateRoomResponse(room_id=room.id, expires_at=room.expires_at)


@router.get("/{room_id}", response_model=GetRoomResponse)
def get_room(room_id: str, state: CollectorState = Depends(get_state)) -> GetRoomResponse:
    """Return room metadata.

    Reading an expired room tears it down and answers 410.
    """
    room = state.room_service.get_room(room_id)
    return GetRoomResponse(
        room=RoomInfo(id=room.id, created_at=room.created_at, expires_at=room.expires_at)
    )


@router.get("/{room_id}/stats", response_model=RoomStatsResponse)
def get_room_stats(
    room_id: str,
    identity: str = Depends(request_identity),
    state: CollectorState = Depends(get_state),
) -> RoomStatsResponse:
    """Submission count and per-category file totals (403 unless creator)."""
    stats = state.room_service.get_room_stats(room_id, identity)
    return RoomStatsResponse(stats=stats)
