from fastapi import APIRouter, HTTPException, Request
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@rooms_router.get("/{room_name}")
async def get_room_description(room_name: str, request: Request):
    """
    Describe a room: each member's resources (screen/video/audio), strongId,
    nickName and mode, keyed by connection id.
    """
    directory = request.app.state.signaling.directory
    description = directory.describe(room_name)
    if not description["clients"]:
        logger.info(f"Room description failed: Room {room_name} not found")
        raise HTTPException(status_code=404, detail="Room not found")
    return description


@rooms_router.get("/{room_name}/members")
async def get_room_members(room_name: str, request: Request):
    directory = request.app.state.signaling.directory
    members = directory.list_members(room_name)
    logger.debug(f"Room {room_name} has {len(members['clients'])} members")
    return members
