"""Timeline endpoint for the Flock API."""

from fastapi import APIRouter, Query, Request
from fastapi.responses import StreamingResponse

from flock.api.v1.dependencies import OptionalUserDep, SessionDep
from flock.api.v1.streaming import event_stream_response, wants_event_stream
from flock.schemas import TimelineItemOut
from flock.services import timeline as timeline_service
from flock.services.errors import require_user
from flock.services.live import get_live_hub

router = APIRouter(tags=["timeline"])


@router.get("/timeline", response_model=list[TimelineItemOut])
async def get_timeline(
    request: Request,
    db: SessionDep,
    user_id: OptionalUserDep,
    last: int = Query(0, description="Page size, clamped to [1, 90]; 0 means 10"),
    before: int | None = Query(None, description="Return items older than this timeline item id"),
) -> list[TimelineItemOut] | StreamingResponse:
    """Return the caller's timeline, or stream new entries as they are fanned out."""
    if wants_event_stream(request):
        return event_stream_response(request, get_live_hub().timeline, require_user(user_id))
    return timeline_service.timeline(db, user_id, last, before)
