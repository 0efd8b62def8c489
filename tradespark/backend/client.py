"""Async client for the hosted backend (auth, tables and remote procedures).

Every call opens a short-lived ``httpx.AsyncClient``; a ``transport`` can be
injected so tests never touch the network.
"""
import logging
from typing import Any
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# PostgREST code for "exactly one row expected"
NO_ROWS = "PGRST116"


class BackendError(Exception):
    def __init__(self, message: str, code: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


class BackendSession(BaseModel):
    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    token_type: str = "bearer"
    user: dict[str, Any] = Field(default_factory=dict)


def _error_from_response(resp: httpx.Response) -> BackendError:
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    message = (
        body.get("message")
        or body.get("msg")
        or body.get("error_description")
        or body.get("error")
        or (resp.text or "")[:500]
        or f"Backend error {resp.status_code}"
    )
    code = body.get("code") or body.get("error_code")
    return BackendError(str(message), code=str(code) if code is not None else None, status_code=resp.status_code)


def _fmt(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


class TableQuery:
    """Chainable PostgREST query: ``client.table("users").select("id").eq("auth_id", x)``."""

    def __init__(self, client: "BackendClient", table: str):
        self._client = client
        self._table = table
        self._columns = "*"
        self._filters: list[tuple[str, str]] = []
        self._order: str | None = None
        self._limit: int | None = None

    @property
    def path(self) -> str:
        return f"/rest/v1/{self._table}"

    def select(self, columns: str = "*") -> "TableQuery":
        self._columns = "".join(columns.split())
        return self

    def eq(self, column: str, value: Any) -> "TableQuery":
        self._filters.append((column, f"eq.{_fmt(value)}"))
        return self

    def neq(self, column: str, value: Any) -> "TableQuery":
        self._filters.append((column, f"neq.{_fmt(value)}"))
        return self

    def order(self, column: str, desc: bool = False) -> "TableQuery":
        self._order = f"{column}.{'desc' if desc else 'asc'}"
        return self

    def limit(self, count: int) -> "TableQuery":
        self._limit = count
        return self

    def _params(self) -> list[tuple[str, str]]:
        params = [("select", self._columns)]
        params.extend(self._filters)
        if self._order:
            params.append(("order", self._order))
        if self._limit is not None:
            params.append(("limit", str(self._limit)))
        return params

    async def execute(self) -> list[dict]:
        resp = await self._client._request("GET", self.path, params=self._params())
        return self._client._json(resp) or []

    async def single(self) -> dict:
        resp = await self._client._request(
            "GET",
            self.path,
            params=self._params(),
            headers={"Accept": "application/vnd.pgrst.object+json"},
        )
        return self._client._json(resp)

    async def maybe_single(self) -> dict | None:
        rows = await self.execute()
        if not rows:
            return None
        if len(rows) > 1:
            raise BackendError(
                "JSON object requested, multiple rows returned",
                code=NO_ROWS,
                status_code=406,
            )
        return rows[0]

    async def insert(self, rows: dict | list[dict]) -> list[dict]:
        resp = await self._client._request(
            "POST",
            self.path,
            params=[("select", self._columns)],
            json=rows,
            headers={"Prefer": "return=representation"},
        )
        return self._client._json(resp) or []

    async def update(self, values: dict) -> list[dict]:
        resp = await self._client._request(
            "PATCH",
            self.path,
            params=self._params(),
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return self._client._json(resp) or []


class BackendClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 15,
    ):
        self.base_url = str(base_url).rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self.timeout = timeout
        self._transport = transport

    def with_token(self, access_token: str) -> "BackendClient":
        return BackendClient(
            self.base_url,
            self.api_key,
            access_token=access_token,
            transport=self._transport,
            timeout=self.timeout,
        )

    def _headers(self, extra: dict | None = None) -> dict:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Content-Type": "application/json",
            "User-Agent": "TradeSpark-FastAPI",
        }
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: list[tuple[str, str]] | dict | None = None,
        json: Any = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.request(
                    method, url, params=params, json=json, headers=self._headers(headers)
                )
        except httpx.RequestError as e:
            raise BackendError(f"Network error: {str(e)[:200]}") from e

        if resp.status_code < 200 or resp.status_code >= 300:
            raise _error_from_response(resp)

        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        if not resp.content:
            return None
        return resp.json()

    # auth

    async def sign_up(self, email: str, password: str, data: dict | None = None) -> tuple[dict, BackendSession | None]:
        resp = await self._request(
            "POST",
            "/auth/v1/signup",
            json={"email": email, "password": password, "data": data or {}},
        )
        body = self._json(resp) or {}
        if body.get("access_token"):
            session = BackendSession(**body)
            return session.user, session
        # email confirmation pending: the user comes back without a session
        return body.get("user") or body, None

    async def sign_in_with_password(self, email: str, password: str) -> BackendSession:
        resp = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return BackendSession(**self._json(resp))

    async def refresh_session(self, refresh_token: str) -> BackendSession:
        resp = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        return BackendSession(**self._json(resp))

    async def exchange_code_for_session(self, auth_code: str, code_verifier: str | None = None) -> BackendSession:
        resp = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "pkce"},
            json={"auth_code": auth_code, "code_verifier": code_verifier},
        )
        return BackendSession(**self._json(resp))

    async def sign_in_with_otp(self, phone: str) -> None:
        await self._request("POST", "/auth/v1/otp", json={"phone": phone})

    async def verify_otp(self, phone: str, token: str, type: str = "sms") -> BackendSession:
        resp = await self._request(
            "POST",
            "/auth/v1/verify",
            json={"phone": phone, "token": token, "type": type},
        )
        return BackendSession(**self._json(resp))

    async def reset_password_for_email(self, email: str, redirect_to: str | None = None) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        await self._request("POST", "/auth/v1/recover", params=params, json={"email": email})

    async def get_user(self) -> dict:
        resp = await self._request("GET", "/auth/v1/user")
        return self._json(resp) or {}

    async def update_user(self, attributes: dict) -> dict:
        resp = await self._request("PUT", "/auth/v1/user", json=attributes)
        return self._json(resp) or {}

    async def sign_out(self) -> None:
        await self._request("POST", "/auth/v1/logout")

    def authorize_url(self, provider: str, redirect_to: str) -> str:
        query = urlencode({"provider": provider, "redirect_to": redirect_to})
        return f"{self.base_url}/auth/v1/authorize?{query}"

    # data

    def table(self, name: str) -> TableQuery:
        return TableQuery(self, name)

    async def rpc(self, name: str, params: dict | None = None) -> Any:
        logger.debug("rpc %s", name)
        resp = await self._request("POST", f"/rest/v1/rpc/{name}", json=params or {})
        return self._json(resp)
