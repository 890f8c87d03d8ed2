import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import RedirectResponse

from app.dependencies import (
    SESSION_COOKIE,
    auth_service,
    get_bookmark_service,
    get_current_user,
)
from app.models.bookmark import BookmarkView
from app.models.user import User
from app.schemas.responses import DashboardResponseSchema, LandingResponseSchema
from app.services.auth import AuthError
from app.services.bookmark import BookmarkError, BookmarkService
from app.services.dashboard import DashboardSession
from app.utils.formatting import to_view

logger = logging.getLogger(__name__)

router = APIRouter(tags=["dashboard"])


@router.get("/", response_model=None)
async def home(
    request: Request, error: str | None = None
) -> RedirectResponse | LandingResponseSchema:
    """Landing page. Signed-in users go straight to their dashboard."""
    if token := request.cookies.get(SESSION_COOKIE):
        try:
            await auth_service.get_current_user(token)
            return RedirectResponse("/dashboard", status_code=status.HTTP_302_FOUND)
        except AuthError as e:
            logger.info(f"Ignoring stale session cookie: {e}")
    return LandingResponseSchema(login_url="/auth/login", error=error)


@router.get("/dashboard", response_model=DashboardResponseSchema)
async def dashboard(
    current_user: Annotated[User, Depends(get_current_user)],
    bookmark_service: Annotated[BookmarkService, Depends(get_bookmark_service)],
) -> DashboardResponseSchema:
    """The signed-in user and their bookmarks, ready to render.

    A failing snapshot renders as an empty list.
    """
    try:
        bookmarks = await bookmark_service.list_bookmarks(current_user.user_id)
    except BookmarkError as e:
        logger.warning(f"Dashboard snapshot failed: {e}")
        bookmarks = []
    views: list[BookmarkView] = [to_view(b) for b in bookmarks]
    return DashboardResponseSchema(user=current_user, bookmarks=views)


@router.websocket("/ws/dashboard")
async def dashboard_feed(
    websocket: WebSocket,
    bookmark_service: Annotated[BookmarkService, Depends(get_bookmark_service)],
    token: str | None = None,
) -> None:
    """Live dashboard: pushes bookmark state and accepts create/delete intents.

    The access token comes from the ``token`` query parameter or the
    session cookie. The subscription is dropped when the socket closes.
    """
    token = token or websocket.cookies.get(SESSION_COOKIE)
    try:
        if not token:
            raise AuthError("Not authenticated")
        user = await auth_service.get_current_user(token)
    except AuthError as e:
        logger.info(f"Rejected dashboard websocket: {e}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    try:
        async with DashboardSession(
            bookmark_service, user, websocket.send_json
        ) as session:
            while True:
                try:
                    message = json.loads(await websocket.receive_text())
                except ValueError:
                    message = None
                if not isinstance(message, dict):
                    await session.send_error("Messages must be JSON objects.")
                    continue
                await session.handle_message(message)
    except WebSocketDisconnect:
        logger.info(f"Dashboard websocket closed for user {user.user_id}")
