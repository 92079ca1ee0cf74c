"""Notification endpoints for the Flock API."""

from fastapi import APIRouter, Query, Request, Response, status
from fastapi.responses import StreamingResponse

from flock.api.v1.dependencies import OptionalUserDep, SessionDep
from flock.api.v1.streaming import event_stream_response, wants_event_stream
from flock.schemas import NotificationOut, UnreadOut
from flock.services import notifications as notification_service
from flock.services.errors import require_user
from flock.services.live import get_live_hub

router = APIRouter(tags=["notifications"])


@router.get("/notifications", response_model=list[NotificationOut])
async def list_notifications(
    request: Request,
    db: SessionDep,
    user_id: OptionalUserDep,
    last: int = Query(0, description="Page size, clamped to [1, 90]; 0 means 10"),
    before: int | None = Query(None, description="Id of the last notification already seen"),
) -> list[NotificationOut] | StreamingResponse:
    """List the caller's notifications, or stream them as they are created or merged."""
    if wants_event_stream(request):
        return event_stream_response(
            request, get_live_hub().notifications, require_user(user_id)
        )
    return notification_service.notifications(db, user_id, last, before)


@router.get("/notifications/has_unread", response_model=UnreadOut)
async def has_unread_notifications(db: SessionDep, user_id: OptionalUserDep) -> UnreadOut:
    """Tell whether the caller has any unread notification."""
    return notification_service.has_unread_notifications(db, user_id)


@router.post(
    "/notifications/{notification_id}/mark_as_read",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def mark_notification_as_read(
    notification_id: int, db: SessionDep, user_id: OptionalUserDep
) -> Response:
    """Mark one of the caller's notifications as read."""
    notification_service.mark_notification_as_read(db, user_id, notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/mark_notifications_as_read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_notifications_as_read(db: SessionDep, user_id: OptionalUserDep) -> Response:
    """Mark all of the caller's notifications as read."""
    notification_service.mark_notifications_as_read(db, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
