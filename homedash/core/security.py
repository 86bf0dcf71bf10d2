"""Session authentication for the homedash API.

This module validates the shared dashboard credential, issues and verifies the
signed session tokens stored in the ``auth_session`` cookie, classifies
request paths for the auth gate, and provides FastAPI dependencies for
session-aware routes.

Token format:
    ``<base64(payload)>.<signature>`` where the payload is
    ``{"username": ..., "expiresAt": <epoch ms>}`` and the signature is an
    HMAC-SHA256 of the encoded payload keyed by AUTH_SECRET. Sessions are
    stateless: they expire by timestamp and cannot be revoked server-side.
    This is a stopgap until the dashboard sits behind a real SSO provider.
"""

import base64
import binascii
import json
import secrets
import time
from dataclasses import dataclass
from typing import Mapping, Optional

from cryptography.hazmat.primitives import hashes, hmac
from fastapi import HTTPException, Request

from ..utils.logging import log_structured
from .config import Settings

AUTH_COOKIE_NAME = "auth_session"
SESSION_DURATION = 24 * 60 * 60  # seconds

# Page routes that require a session
PROTECTED_ROUTES = ["/services"]

# API routes that require a session, except the public ones below
PROTECTED_API_PREFIXES = ["/api/"]
PUBLIC_API_ROUTES = [
    "/api/auth/login",
    "/api/auth/logout",
    "/api/health",
    # Public widgets for the read-only /dashboard page
    "/api/adguard",
    "/api/homeassistant",
    "/api/immich",
    "/api/portainer",
    "/api/truenas",
]


@dataclass(frozen=True)
class AuthSession:
    """A verified session."""

    username: str
    expires_at: int  # epoch milliseconds


def _now_ms(now: Optional[float] = None) -> int:
    return int((time.time() if now is None else now) * 1000)


def _secret(settings: Settings) -> bytes:
    return settings.AUTH_SECRET.encode("utf-8")


def _sign(encoded: str, secret: bytes) -> str:
    mac = hmac.HMAC(secret, hashes.SHA256())
    mac.update(encoded.encode("ascii"))
    return base64.urlsafe_b64encode(mac.finalize()).rstrip(b"=").decode("ascii")


def _equal(a: str, b: str) -> bool:
    return secrets.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def validate_credentials(username: str, password: str, settings: Settings) -> bool:
    """Checks a login attempt against the configured credential.

    Args:
        username: Submitted username.
        password: Submitted password.
        settings: Application settings.

    Returns:
        True on an exact match. Always False when AUTH_PASSWORD is unset.
    """
    if not settings.AUTH_PASSWORD:
        log_structured("WARN", "AUTH_PASSWORD not set - authentication disabled", "AUTH")
        return False
    # Both comparisons always run
    user_ok = _equal(username, settings.AUTH_USERNAME)
    pass_ok = _equal(password, settings.AUTH_PASSWORD)
    return user_ok and pass_ok


def create_session_token(
    username: str, settings: Settings, now: Optional[float] = None
) -> str:
    """Issues a session token valid for SESSION_DURATION.

    Args:
        username: Authenticated username.
        settings: Application settings.
        now: Current epoch seconds; defaults to the wall clock.

    Returns:
        The opaque token string.
    """
    expires_at = _now_ms(now) + SESSION_DURATION * 1000
    payload = json.dumps({"username": username, "expiresAt": expires_at})
    encoded = base64.b64encode(payload.encode("utf-8")).decode("ascii")
    return f"{encoded}.{_sign(encoded, _secret(settings))}"


def validate_session_token(
    token: Optional[str], settings: Settings, now: Optional[float] = None
) -> Optional[AuthSession]:
    """Verifies a session token.

    Args:
        token: The token from the session cookie.
        settings: Application settings.
        now: Current epoch seconds; defaults to the wall clock.

    Returns:
        The session if the signature matches and it has not expired, else None.
    """
    if not token:
        return None
    parts = token.split(".")
    if len(parts) != 2:
        return None
    encoded, signature = parts
    if not encoded.isascii() or not signature.isascii():
        return None

    if not _equal(signature, _sign(encoded, _secret(settings))):
        return None

    try:
        payload = json.loads(base64.b64decode(encoded, validate=True).decode("utf-8"))
        username = payload["username"]
        expires_at = int(payload["expiresAt"])
    except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError):
        return None

    if not isinstance(username, str) or expires_at < _now_ms(now):
        return None
    return AuthSession(username=username, expires_at=expires_at)


def get_session_from_cookies(
    cookies: Mapping[str, str], settings: Settings
) -> Optional[AuthSession]:
    """Returns the session carried by a request's cookies, if valid."""
    return validate_session_token(cookies.get(AUTH_COOKIE_NAME), settings)


def is_authenticated(cookies: Mapping[str, str], settings: Settings) -> bool:
    return get_session_from_cookies(cookies, settings) is not None


def is_protected_page(path: str) -> bool:
    return any(path == route or path.startswith(route + "/") for route in PROTECTED_ROUTES)


def is_protected_api(path: str) -> bool:
    return (
        any(path.startswith(prefix) for prefix in PROTECTED_API_PREFIXES)
        and path not in PUBLIC_API_ROUTES
    )


def is_secure_request(request: Request, settings: Settings) -> bool:
    """Decides whether the session cookie should carry the Secure flag."""
    if settings.HTTPS_ENABLED:
        return True
    forwarded = request.headers.get("x-forwarded-proto", "")
    return request.url.scheme == "https" or forwarded.split(",")[0].strip() == "https"


def get_settings(request: Request) -> Settings:
    """Dependency returning the settings the app was created with."""
    return request.app.state.settings


async def get_current_session(request: Request) -> AuthSession:
    """Dependency that requires a valid session cookie.

    Raises:
        HTTPException: 401 if the request carries no valid session.
    """
    session = get_session_from_cookies(request.cookies, get_settings(request))
    if session is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return session
