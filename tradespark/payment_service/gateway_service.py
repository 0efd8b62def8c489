from decimal import Decimal

import httpx

from tradespark.payment_service.schemas import CreateOrderResult, VerifyOrderResult


class GatewayError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _body(resp: httpx.Response) -> dict:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class PaymentGateway:
    """Client of the payment proxy fronting the hosted checkout."""

    def __init__(self, base_url: str, transport: httpx.AsyncBaseTransport | None = None, timeout: float = 15):
        self.base_url = str(base_url).rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "User-Agent": "TradeSpark-FastAPI",
        }

    async def _post(self, path: str, payload: dict) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                return await client.post(f"{self.base_url}{path}", json=payload, headers=self._headers())
        except httpx.RequestError as e:
            raise GatewayError(f"Payment gateway network error: {str(e)[:200]}") from e

    async def create_order(
        self,
        amount: Decimal,
        customer_id: str,
        email: str = "",
        phone: str = "",
    ) -> CreateOrderResult:
        payload = {
            "amount": float(amount),
            "customerId": customer_id,
            "email": email,
            "phone": phone,
        }
        resp = await self._post("/create-order", payload)
        data = _body(resp)

        if resp.status_code < 200 or resp.status_code >= 300:
            raise GatewayError(data.get("error") or "Failed to create order", resp.status_code)

        return CreateOrderResult(
            order_id=data.get("order_id") or None,
            payment_link=data.get("payment_link") or None,
        )

    async def verify_order(self, order_id: str) -> VerifyOrderResult:
        resp = await self._post("/verify-order", {"orderId": order_id})
        data = _body(resp)

        ok = 200 <= resp.status_code < 300
        return VerifyOrderResult(
            success=bool(ok and data.get("success")),
            status=data.get("status") or data.get("error"),
        )
