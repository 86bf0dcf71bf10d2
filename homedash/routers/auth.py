"""Authentication router for the homedash API.

This module provides the login and logout endpoints that issue and clear the
``auth_session`` cookie, plus a session introspection endpoint.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

from ..core.config import Settings
from ..core.security import (
    AUTH_COOKIE_NAME,
    SESSION_DURATION,
    AuthSession,
    create_session_token,
    get_current_session,
    get_settings,
    is_secure_request,
    validate_credentials,
)
from ..utils.logging import log_structured

router = APIRouter(prefix="/auth", tags=["auth"])


def failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


@router.post("/login")
async def login(request: Request, settings: Settings = Depends(get_settings)):
    """Verifies the dashboard credential and sets the session cookie.

    Args:
        request: Request whose JSON body carries ``username`` and ``password``.
        settings: Application settings.

    Returns:
        ``{"success": true}`` with the cookie set, or a 400/401 failure body.
    """
    try:
        body = await request.json()
    except ValueError:
        return failure(400, "Invalid request body")
    if not isinstance(body, dict):
        return failure(400, "Invalid request body")

    username = body.get("username")
    password = body.get("password")
    if not username or not password:
        return failure(400, "Username and password are required")
    if not isinstance(username, str) or not isinstance(password, str):
        return failure(400, "Invalid request body")

    if not validate_credentials(username, password, settings):
        log_structured("SECURITY", f"Failed login attempt for user '{username}'", "AUTH")
        return failure(401, "Invalid username or password")

    response = JSONResponse({"success": True, "message": "Login successful"})
    response.set_cookie(
        AUTH_COOKIE_NAME,
        create_session_token(username, settings),
        max_age=SESSION_DURATION,
        path="/",
        httponly=True,
        samesite="lax",
        secure=is_secure_request(request, settings),
    )
    log_structured("INFO", f"User '{username}' logged in", "AUTH")
    return response


@router.post("/logout")
def logout():
    """Clears the session cookie."""
    response = JSONResponse({"success": True, "message": "Logged out successfully"})
    response.delete_cookie(AUTH_COOKIE_NAME, path="/")
    return response


@router.get("/logout")
def logout_redirect():
    """Clears the session cookie and sends the browser home."""
    response = RedirectResponse("/", status_code=302)
    response.delete_cookie(AUTH_COOKIE_NAME, path="/")
    return response


@router.get("/session")
def get_session(session: AuthSession = Depends(get_current_session)):
    """Describes the caller's session.

    Args:
        session: The verified session.

    Returns:
        The username and expiry (epoch milliseconds).
    """
    return {
        "authenticated": True,
        "username": session.username,
        "expiresAt": session.expires_at,
    }
