import json
import os
import time

os.environ.setdefault("SUPABASE_URL", "https://project.supabase.test")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-enough-length-1234")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_API_BASE_URL", "https://payments.test")
os.environ.setdefault("WALLET_RATE_LIMIT", "1000/minute")

import httpx
import jwt
import pytest

from tradespark.backend.client import BackendClient
from tradespark.core.auth import AuthSession
from tradespark.core.database import Base, SessionLocal, engine

SUPABASE_URL = os.environ["SUPABASE_URL"]
AUTH_ID = "auth-123"
USER_ID = "11"


class FakeBackend:
    """Records requests and answers them from a route table.

    Routes are keyed by ``(METHOD, path)``; a value is either a response
    body, an ``httpx.Response`` or a callable taking the request.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], object] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, response):
        self.routes[(method, path)] = response
        return self

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": f"no route {request.method} {request.url.path}"})
        if callable(route):
            route = route(request)
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, token: str | None = None) -> BackendClient:
        return BackendClient(SUPABASE_URL, "anon-key", access_token=token, transport=self.transport)


def body(request: httpx.Request):
    return json.loads(request.content or b"null")


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def db():
    # the in-memory engine is shared process-wide; start from empty tables
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def make_token(sub: str = AUTH_ID, expires_in: int = 3600, **claims) -> str:
    payload = {
        "sub": sub,
        "aud": "authenticated",
        "email": "trader@example.com",
        "phone": "9876543210",
        "exp": int(time.time()) + expires_in,
        **claims,
    }
    return jwt.encode(payload, os.environ["SUPABASE_JWT_SECRET"], algorithm="HS256")


@pytest.fixture
def token():
    return make_token()


@pytest.fixture
def auth_session(token):
    return AuthSession(
        access_token=token,
        auth_id=AUTH_ID,
        email="trader@example.com",
        phone="9876543210",
    )
