"""REST endpoints for recording and listing game events."""

import logging

from fastapi import APIRouter, HTTPException, Query, Response, status

from app.dependencies.game import GameServiceDep
from app.schemas.events import (
    EventListData,
    EventListResponse,
    EventSubmissionData,
    EventSubmissionRequest,
    EventSubmissionResponse,
    Pagination,
)
from app.schemas.game_engine import EventType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])

# Any other code is a rejected event (400)
ERROR_STATUS_MAP = {
    "GAME_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "GAME_BUSY": status.HTTP_409_CONFLICT,
    "REPLAY_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "INTERNAL_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@router.post("", response_model=EventSubmissionResponse, status_code=status.HTTP_201_CREATED)
async def submit_event(
    request: EventSubmissionRequest,
    response: Response,
    game_service: GameServiceDep,
):
    """Submit a game event.

    The event is validated against the current snapshot, appended to the log
    and applied. Undo removes the most recent event and answers 200 with a
    null event; edit replaces the most recent event.

    Raises:
        HTTPException 400: If the event is rejected.
        HTTPException 404: If the game has no snapshot.
        HTTPException 409: If another submission holds the game.
        HTTPException 500: If the log could not be replayed.
    """
    logger.info(
        "POST /events - game: %s, type: %s, umpire: %s",
        request.game_id,
        request.type,
        request.umpire_id,
    )

    result = await game_service.submit_event(
        game_id=request.game_id,
        event_type=request.type,
        payload=request.payload,
        umpire_id=request.umpire_id,
        previous_event_id=request.previous_event_id,
    )

    if not result.success:
        http_status = ERROR_STATUS_MAP.get(result.error_code, status.HTTP_400_BAD_REQUEST)
        log = logger.error if result.fatal else logger.warning
        log(
            "Event rejected for game %s: %s - %s",
            request.game_id,
            result.error_code,
            result.error_message,
        )
        raise HTTPException(
            status_code=http_status,
            detail=result.error_message or "Failed to submit event",
        )

    if request.type == EventType.UNDO.value:
        response.status_code = status.HTTP_200_OK

    return EventSubmissionResponse(
        data=EventSubmissionData(
            event=result.event,
            snapshot=result.snapshot,
            warnings=result.warnings,
        )
    )


@router.get("", response_model=EventListResponse)
async def list_events(
    game_service: GameServiceDep,
    game_id: str = Query(..., min_length=1),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    """List a game's events in sequence order."""
    logger.info("GET /events - game: %s, limit: %d, offset: %d", game_id, limit, offset)

    events, total = await game_service.list_events(game_id, limit=limit, offset=offset)
    return EventListResponse(
        data=EventListData(
            events=events,
            pagination=Pagination(limit=limit, offset=offset, total=total),
        )
    )
