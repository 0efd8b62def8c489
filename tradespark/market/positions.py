import logging
import math
from decimal import Decimal

from tradespark.backend.client import BackendClient, BackendError
from tradespark.core.auth import AuthSession, resolve_app_user_id
from tradespark.core.errors import ErrorCode, ErrorMessage, bad_request, upstream_error
from tradespark.market.schemas import PositionOut, Side
from tradespark.transactions.ledger import fetch_balance

logger = logging.getLogger(__name__)


def floor_quantity(quantity) -> int:
    try:
        value = float(quantity)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(value):
        return 0
    return max(0, math.floor(value))


def _to_position(row: dict) -> PositionOut:
    quantity = int(row.get("quantity") or 0)
    entry_price = float(row.get("entry_price") or 0)
    return PositionOut(
        id=str(row["id"]) if row.get("id") is not None else None,
        symbol=row["symbol"],
        side=row["side"],
        quantity=quantity,
        entryPrice=entry_price,
        total=round(quantity * entry_price, 2),
        createdAt=row.get("created_at"),
    )


class PositionService:
    """Records position entries. There is no matching engine behind it."""

    def __init__(self, backend: BackendClient, session: AuthSession, user_id: str | None = None):
        self.backend = backend
        self.session = session
        self._user_id = user_id

    async def user_id(self) -> str:
        if self._user_id is None:
            self._user_id = await resolve_app_user_id(self.backend, self.session.auth_id)
        return self._user_id

    async def open_position(self, side: Side, symbol: str, quantity, price: float) -> PositionOut:
        qty = floor_quantity(quantity)
        if qty <= 0:
            raise bad_request(ErrorCode.VALIDATION_FAILED, ErrorMessage.INVALID_QUANTITY)

        price = float(price or 0)
        total = round(qty * price, 2)
        user_id = await self.user_id()

        if side == Side.BUY:
            balance = await fetch_balance(self.backend, user_id)
            if Decimal(str(total)) > balance:
                raise bad_request(ErrorCode.INSUFFICIENT_BALANCE, ErrorMessage.INSUFFICIENT_BALANCE)

        try:
            rows = await self.backend.table("positions").insert(
                {
                    "user_id": user_id,
                    "symbol": symbol,
                    "side": side.value,
                    "quantity": qty,
                    "entry_price": price,
                }
            )
        except BackendError as e:
            logger.error("placeOrder error for user %s: %s", user_id, e.message)
            raise bad_request(ErrorCode.TRADE_FAILED, e.message or "Server error", title="Trade failed")

        logger.info("Trade placed: %s %s %s @ %s", side.value, qty, symbol, price)
        if rows:
            return _to_position(rows[0])
        return PositionOut(symbol=symbol, side=side, quantity=qty, entryPrice=price, total=total)

    async def list_positions(self) -> list[PositionOut]:
        user_id = await self.user_id()
        try:
            rows = await (
                self.backend.table("positions")
                .select("*")
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .execute()
            )
        except BackendError as e:
            raise upstream_error(ErrorCode.BACKEND_ERROR, e.message)
        return [_to_position(row) for row in rows]
