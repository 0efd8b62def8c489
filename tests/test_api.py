import httpx
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from tradespark.core.database import Base, engine
from tradespark.core.dependencies import get_backend_client, get_market_service, get_payment_gateway
from tradespark.main import app
from tradespark.market.quotes import MarketDataService
from tradespark.payment_service.gateway_service import PaymentGateway
from tests.conftest import USER_ID, make_token


def gateway_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/create-order":
        return httpx.Response(200, json={"order_id": "order_api", "payment_link": "https://checkout.test/pay/order_api"})
    return httpx.Response(200, json={"success": True, "status": "PAID"})


def market_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        json={"data": [{"symbol": "BTC/USDT", "price": 65000}, {"symbol": "TCS", "name": "Tata Consultancy", "price": 4000}]},
    )


@pytest.fixture
def client(fake_backend):
    Base.metadata.drop_all(bind=engine)
    fake_backend.on("GET", "/rest/v1/users", lambda r: httpx.Response(200, json={"id": int(USER_ID)}))
    fake_backend.on("GET", "/rest/v1/wallets", lambda r: httpx.Response(200, json={"balance": 500}))
    fake_backend.on("GET", "/rest/v1/transactions", [])
    fake_backend.on("GET", "/rest/v1/referrals", [{"referral_code": "ABCD1234", "referred_count": 3, "points": 30}])

    app.dependency_overrides[get_backend_client] = lambda: fake_backend.client()
    app.dependency_overrides[get_payment_gateway] = lambda: PaymentGateway(
        "https://payments.test", transport=httpx.MockTransport(gateway_handler)
    )
    app.dependency_overrides[get_market_service] = lambda: MarketDataService(
        "https://app.test", "https://binance.test", transport=httpx.MockTransport(market_handler)
    )
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def headers(token):
    return {"Authorization": f"Bearer {token}"}


def test_health(client):
    assert client.get("/").json()["status"] == "healthy"


def test_session_gate(client, headers):
    assert client.get("/api/session").json()["data"]["route"] == "signin"
    assert client.get("/api/session", headers=headers).json()["data"]["route"] == "dashboard"

    expired = {"Authorization": f"Bearer {make_token(expires_in=-60)}"}
    assert client.get("/api/session", headers=expired).json()["data"]["route"] == "signin"


def test_wallet_requires_session(client):
    resp = client.get("/api/wallet")

    assert resp.status_code == 401
    assert resp.json()["success"] is False
    assert resp.json()["error"]["code"] == "AUTH_UNAUTHORIZED"


def test_wallet_overview(client, headers):
    resp = client.get("/api/wallet", headers=headers)

    assert resp.status_code == 200
    assert float(resp.json()["data"]["balance"]) == 500


def test_withdraw_rejects_zero_before_backend(client, headers, fake_backend):
    resp = client.post("/api/wallet/withdrawals", json={"amount": 0}, headers=headers)

    assert resp.status_code == 400
    assert resp.json()["error"] == {
        "code": "INVALID_AMOUNT",
        "title": "Invalid amount",
        "message": "Enter a positive number",
        "details": {},
    }
    assert fake_backend.requests == []


def test_deposit_round_trip(client, headers):
    started = client.post("/api/wallet/deposits", json={"amount": 250}, headers=headers)
    assert started.status_code == 200
    assert started.json()["data"]["checkoutUrl"] == "https://checkout.test/pay/order_api"

    moving = client.post(
        "/api/wallet/deposits/order_api/navigation",
        json={"url": "https://checkout.test/pay/order_api/step2"},
        headers=headers,
    )
    assert moving.json()["data"]["completed"] is False

    returned = client.post(
        "/api/wallet/deposits/order_api/navigation",
        json={"url": "https://app.test/done?cf-return=1"},
        headers=headers,
    )
    data = returned.json()["data"]
    assert data["title"] == "Deposit successful"
    assert data["message"] == "₹250.00 added"

    status = client.get("/api/wallet/deposits/order_api", headers=headers)
    assert status.json()["data"]["status"] == "CONFIRMED"
    assert status.json()["data"]["verified"] is True


def test_declined_deposit_is_reported_once_verified(client, headers):
    verify_calls = []

    def declining_gateway(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/create-order":
            return httpx.Response(
                200, json={"order_id": "order_declined", "payment_link": "https://checkout.test/pay/order_declined"}
            )
        verify_calls.append(request)
        return httpx.Response(200, json={"success": False, "status": "USER_DROPPED"})

    app.dependency_overrides[get_payment_gateway] = lambda: PaymentGateway(
        "https://payments.test", transport=httpx.MockTransport(declining_gateway)
    )

    started = client.post("/api/wallet/deposits", json={"amount": 100}, headers=headers)
    assert started.status_code == 200

    for _ in range(2):
        returned = client.post(
            "/api/wallet/deposits/order_declined/navigation",
            json={"url": "https://app.test/done?cf-return=1"},
            headers=headers,
        )
        assert returned.status_code == 400
        error = returned.json()["error"]
        assert error["code"] == "PAYMENT_NOT_CONFIRMED"
        assert error["title"] == "Payment not confirmed"
        assert error["message"] == "USER_DROPPED"
        assert error["details"] == {"orderId": "order_declined"}

    assert len(verify_calls) == 1

    status = client.get("/api/wallet/deposits/order_declined", headers=headers)
    assert status.json()["data"]["status"] == "FAILED"


def test_dashboard(client, headers):
    resp = client.get("/api/dashboard", headers=headers)

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["referral"] == {"referralCode": "ABCD1234", "totalReferrals": 3, "rewardPoints": 30}


def test_market_quotes_search(client):
    resp = client.get("/api/market/quotes", params={"search": "tata"})

    assert [q["symbol"] for q in resp.json()["data"]] == ["TCS"]


def test_ticker_socket_rejects_unknown_channel(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/ticker?symbol=BTCUSDT&channel=trades"):
            pass
