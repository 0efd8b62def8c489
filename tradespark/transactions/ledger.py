import logging
from datetime import date, datetime, timezone
from decimal import Decimal

from tradespark.backend.client import BackendClient, BackendError
from tradespark.core.errors import ErrorCode, upstream_error
from tradespark.transactions.schemas import TransactionItem, WalletSnapshot, WalletSummary

logger = logging.getLogger(__name__)


def _amount(row: dict) -> Decimal:
    return Decimal(str(row.get("amount") or 0))


def summarize(transactions: list[dict], today: date | None = None) -> WalletSummary:
    today_str = (today or datetime.now(timezone.utc).date()).isoformat()
    summary = WalletSummary()

    for row in transactions:
        kind = str(row.get("type") or "").lower()
        amount = _amount(row)

        if kind == "deposit":
            summary.totalDeposits += amount
        elif kind == "withdrawal":
            summary.totalWithdrawals += amount
        elif kind == "earning":
            summary.totalEarnings += amount
            if str(row.get("created_at") or "").split("T")[0] == today_str:
                summary.todayEarnings += amount

    return summary


def to_items(transactions: list[dict]) -> list[TransactionItem]:
    return [
        TransactionItem(
            id=str(row.get("id")),
            type=str(row.get("type") or ""),
            amount=_amount(row),
            status=str(row.get("status") or ""),
            createdAt=str(row.get("created_at") or ""),
        )
        for row in transactions
    ]


async def fetch_balance(backend: BackendClient, user_id: str) -> Decimal:
    try:
        row = await backend.table("wallets").select("balance").eq("user_id", user_id).single()
    except BackendError as e:
        logger.warning("Balance lookup failed for user %s: %s", user_id, e.message)
        raise upstream_error(ErrorCode.BACKEND_ERROR, e.message)
    return Decimal(str((row or {}).get("balance") or 0))


async def fetch_transactions(backend: BackendClient, user_id: str) -> list[dict]:
    try:
        return await (
            backend.table("transactions")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )
    except BackendError as e:
        logger.warning("Transaction lookup failed for user %s: %s", user_id, e.message)
        raise upstream_error(ErrorCode.BACKEND_ERROR, e.message)


async def load_wallet(backend: BackendClient, user_id: str) -> WalletSnapshot:
    """Balance, newest-first history and totals; the server stays the source of truth."""
    balance = await fetch_balance(backend, user_id)
    rows = await fetch_transactions(backend, user_id)
    return WalletSnapshot(balance=balance, transactions=to_items(rows), summary=summarize(rows))
