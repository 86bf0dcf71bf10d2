import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from homedash.core.config import Settings
from homedash.main import create_app

TEST_PASSWORD = "correct-horse"
TEST_SECRET = "test-secret-value"


def mock_transport(routes):
    """Builds a transport answering from a route table.

    Keys are ``"METHOD /path"``, ``"/path"`` or ``"host/path"``. Values are a
    callable taking the request, a ``(status, body)`` tuple, or a JSON body
    answered with 200. Anything unmatched gets a 404.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        keys = (
            f"{request.method} {request.url.path}",
            request.url.path,
            f"{request.url.host}{request.url.path}",
        )
        for key in keys:
            if key in routes:
                reply = routes[key]
                break
        else:
            return httpx.Response(404, json={"error": "not found"})

        if callable(reply):
            return reply(request)
        if isinstance(reply, tuple):
            status, body = reply
            if isinstance(body, (bytes, str)):
                return httpx.Response(status, content=body)
            return httpx.Response(status, json=body)
        return httpx.Response(200, json=reply)

    return httpx.MockTransport(handler)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def make_settings():
    def factory(**overrides):
        values = {
            "AUTH_USERNAME": "admin",
            "AUTH_PASSWORD": TEST_PASSWORD,
            "AUTH_SECRET": TEST_SECRET,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return factory


@pytest.fixture
def make_client(make_settings):
    def factory(routes=None, **overrides):
        transport = mock_transport(routes or {})
        app = create_app(make_settings(**overrides), transport=transport)
        return TestClient(app)

    return factory


def login(client, username="admin", password=TEST_PASSWORD):
    return client.post(
        "/api/auth/login", json={"username": username, "password": password}
    )
