"""REST endpoints for reading game state."""

import logging

from fastapi import APIRouter, HTTPException, status

from app.dependencies.game import GameServiceDep
from app.schemas.events import ReplayCheckResponse, SnapshotResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/games", tags=["games"])


@router.get("/{game_id}/snapshot", response_model=SnapshotResponse)
async def get_snapshot(game_id: str, game_service: GameServiceDep):
    """Get the current snapshot of a game.

    Raises:
        HTTPException 404: If the game has no snapshot.
    """
    logger.info("GET /games/%s/snapshot", game_id)

    snapshot = await game_service.get_snapshot(game_id)
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Game not found")
    return SnapshotResponse(data=snapshot)


@router.get("/{game_id}/replay-check", response_model=ReplayCheckResponse)
async def replay_check(game_id: str, game_service: GameServiceDep):
    """Rebuild the snapshot from the event log and compare it with the stored one."""
    logger.info("GET /games/%s/replay-check", game_id)

    result = await game_service.check_replay(game_id)
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Game not found")

    return ReplayCheckResponse(
        game_id=result.game_id,
        matches=result.matches,
        event_count=result.event_count,
        differences=result.differences,
        error_message=result.error_message,
    )
