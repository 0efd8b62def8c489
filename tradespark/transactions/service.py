import logging
from decimal import Decimal

from tradespark.backend.client import BackendClient, BackendError
from tradespark.core.auth import AuthSession, resolve_app_user_id
from tradespark.core.config import settings
from tradespark.core.errors import ErrorCode, bad_request
from tradespark.core.models import OrderStatus
from tradespark.payment_service.schemas import DepositCustomer
from tradespark.transactions.deposit_flow import DepositFlow, validate_amount
from tradespark.transactions.ledger import load_wallet
from tradespark.transactions.schemas import (
    DepositStarted,
    NavigationResult,
    WalletSnapshot,
    WithdrawalResult,
)

logger = logging.getLogger(__name__)


def format_money(amount: Decimal) -> str:
    return f"{settings.CURRENCY_SYMBOL}{Decimal(amount):.2f}"


class WalletService:
    """Wallet screen actions for one signed-in user.

    The app user id is looked up lazily so that input rejected on this side
    never reaches the backend.
    """

    def __init__(self, backend: BackendClient, session: AuthSession, user_id: str | None = None):
        self.backend = backend
        self.session = session
        self._user_id = user_id

    async def user_id(self) -> str:
        if self._user_id is None:
            self._user_id = await resolve_app_user_id(self.backend, self.session.auth_id)
        return self._user_id

    async def snapshot(self) -> WalletSnapshot:
        return await load_wallet(self.backend, await self.user_id())

    async def withdraw(self, amount: Decimal) -> WithdrawalResult:
        amount = validate_amount(amount)
        user_id = await self.user_id()

        # the procedure validates and debits atomically
        try:
            await self.backend.rpc("withdraw", {"p_user_id": user_id, "p_amount": float(amount)})
        except BackendError as e:
            logger.warning("Withdrawal of %s rejected for user %s: %s", amount, user_id, e.message)
            raise bad_request(ErrorCode.WITHDRAWAL_FAILED, e.message)

        logger.info("Withdrawal of %s completed for user %s", amount, user_id)
        return WithdrawalResult(
            amount=amount,
            message=f"Withdrew {format_money(amount)}",
            wallet=await self.snapshot(),
        )

    async def start_deposit(self, flow: DepositFlow, amount: Decimal) -> DepositStarted:
        amount = validate_amount(amount)
        customer = DepositCustomer(
            auth_id=self.session.auth_id,
            user_id=await self.user_id(),
            email=self.session.email or "",
            phone=self.session.phone or self.session.user_metadata.get("phone") or "",
        )

        order = await flow.start(customer, amount)
        return DepositStarted(
            orderId=order.order_id,
            amount=order.amount,
            checkoutUrl=order.checkout_url,
            status=order.status,
        )

    async def handle_navigation(self, flow: DepositFlow, order_id: str, url: str) -> NavigationResult:
        outcome = await flow.handle_navigation(order_id, url, self.session.auth_id)
        if outcome is None:
            return NavigationResult(completed=False, orderId=order_id)

        order = outcome.order

        if order.status == OrderStatus.CONFIRMED:
            return NavigationResult(
                completed=True,
                orderId=order.order_id,
                status=order.status,
                title="Deposit successful",
                message=f"{format_money(order.amount)} added",
                wallet=await self.snapshot(),
            )

        if order.status == OrderStatus.VERIFYING:
            return NavigationResult(
                completed=True,
                orderId=order.order_id,
                status=order.status,
                message="Payment verification in progress",
            )

        raise bad_request(
            ErrorCode.PAYMENT_NOT_CONFIRMED,
            order.gateway_status or "Unknown",
            title="Payment not confirmed",
            details={"orderId": order.order_id},
        )
