"""Homedash API.

This module is the entry point for the homedash FastAPI application. It wires
the status, feed, auth and system routers under ``/api`` and installs the
middleware that guards protected routes and hardens every response.

Architecture:
    - FastAPI application built by ``create_app`` from a frozen Settings
    - Router-based endpoint organization, all mounted under /api
    - One short-lived httpx client per handler invocation, no shared state
    - Auth gate middleware in front of every route
    - Security headers middleware for XSS and clickjacking protection

Key Components:
    - Service Status (status router): one widget endpoint per integration
    - Feeds (feeds router): RSS/Atom, YouTube and Reddit aggregation
    - Authentication (auth router): login, logout, session introspection
    - Health (system router): liveness probe

Auth Gate:
    Pages under /services and every /api route outside PUBLIC_API_ROUTES
    require a valid ``auth_session`` cookie. API callers get a 401 JSON body;
    browsers are redirected to /login with the requested path preserved.

Configuration:
    Environment variables managed via homedash.core.config.Settings.
    ``create_app`` accepts an explicit Settings and an httpx transport so
    tests can run against simulated upstreams.
"""

from typing import Optional
from urllib.parse import quote

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from .core.config import DEFAULT_AUTH_SECRET, Settings, settings as default_settings
from .core.security import is_authenticated, is_protected_api, is_protected_page
from .routers import auth, feeds, status, system
from .utils.logging import configure_logging, log_structured


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Builds the FastAPI application.

    Args:
        settings: Configuration to serve with; defaults to the environment.
        transport: Optional httpx transport used for every upstream call.

    Returns:
        The configured application.
    """
    settings = settings or default_settings
    configure_logging(settings)
    if settings.AUTH_SECRET == DEFAULT_AUTH_SECRET:
        log_structured(
            "WARN", "AUTH_SECRET is the default value; set it in production", "AUTH"
        )
    if not settings.AUTH_PASSWORD:
        log_structured("WARN", "AUTH_PASSWORD not set - logins will fail", "AUTH")

    app = FastAPI(title=settings.APP_NAME)
    app.state.settings = settings
    app.state.transport = transport

    app.include_router(auth.router, prefix="/api")
    app.include_router(system.router, prefix="/api")
    app.include_router(status.router, prefix="/api")
    app.include_router(feeds.router, prefix="/api")

    @app.middleware("http")
    async def auth_gate_middleware(request: Request, call_next):
        """Rejects unauthenticated requests to protected routes.

        Args:
            request: The incoming request.
            call_next: The next middleware or endpoint.

        Returns:
            A 401 or redirect for anonymous callers, else the route's response.
        """
        path = request.url.path
        if is_protected_api(path):
            if not is_authenticated(request.cookies, settings):
                return JSONResponse(
                    status_code=401,
                    content={"error": "Unauthorized", "message": "Authentication required"},
                )
        elif is_protected_page(path):
            if not is_authenticated(request.cookies, settings):
                return RedirectResponse(
                    f"/login?redirect={quote(path, safe='')}", status_code=302
                )
        return await call_next(request)

    @app.middleware("http")
    async def security_headers_middleware(request: Request, call_next):
        """Adds security headers to every response, including gate rejections."""
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response

    # CORS configuration; outermost, so it also wraps the auth gate
    allow_all_origins = "*" in settings.CORS_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all_origins else settings.CORS_ORIGINS,
        allow_credentials=not allow_all_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app


app = create_app()


def run():
    """Serves the application with uvicorn."""
    uvicorn.run(
        "homedash.main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        log_level="info",
        access_log=False,
    )


if __name__ == "__main__":
    run()
