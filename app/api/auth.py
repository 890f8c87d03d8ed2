import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import RedirectResponse

from app.dependencies import SESSION_COOKIE, auth_service
from app.services.auth import AuthError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

DEFAULT_NEXT = "/dashboard"


def _origin(request: Request) -> str:
    return f"{request.url.scheme}://{request.url.netloc}"


def _safe_next(next_path: str | None) -> str:
    # Only same-origin paths, never a protocol-relative URL
    if not next_path or not next_path.startswith("/") or next_path.startswith("//"):
        return DEFAULT_NEXT
    return next_path


@router.get("/login")
async def login(request: Request) -> RedirectResponse:
    """Send the browser to the identity provider's login page."""
    redirect_uri = f"{_origin(request)}/auth/callback"
    return RedirectResponse(
        auth_service.authorize_url(redirect_uri),
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/callback")
async def callback(
    request: Request, code: str | None = None, next: str | None = None
) -> RedirectResponse:
    """Finish the OAuth sign-in.

    Exchanges the one-time code for a session, stores the access token in
    a cookie and redirects to ``next``. Any failure sends the user back to
    the landing page with ``?error=auth``.
    """
    origin = _origin(request)
    failure = RedirectResponse(
        f"{origin}/?error=auth", status_code=status.HTTP_302_FOUND
    )
    if not code:
        return failure

    try:
        session = auth_service.exchange_code_for_session(
            code, f"{origin}/auth/callback"
        )
    except AuthError as e:
        logger.warning(f"Auth callback failed: {e}")
        return failure

    response = RedirectResponse(
        f"{origin}{_safe_next(next)}", status_code=status.HTTP_302_FOUND
    )
    response.set_cookie(
        SESSION_COOKIE,
        session.access_token,
        max_age=session.expires_in,
        httponly=True,
        secure=request.url.scheme == "https",
        samesite="lax",
    )
    return response


@router.post("/signout")
async def sign_out(request: Request) -> RedirectResponse:
    """Clear the session cookie and end the provider session."""
    response = RedirectResponse(
        auth_service.sign_out_url(f"{_origin(request)}/"),
        status_code=status.HTTP_303_SEE_OTHER,
    )
    response.delete_cookie(SESSION_COOKIE)
    return response
