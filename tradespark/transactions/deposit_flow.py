"""Deposit coordination with the payment gateway.

The flow is a plain sequence: create an order, hand its checkout URL to the
caller, wait for a navigation event carrying the return marker, verify the
order once and record the outcome. Balance and ledger changes happen on the
server; this side only keeps the in-flight order.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tradespark.core.config import settings
from tradespark.core.errors import (
    ErrorCode,
    ErrorMessage,
    bad_request,
    not_found,
    upstream_error,
)
from tradespark.core.models import OrderStatus, PendingOrder
from tradespark.payment_service.gateway_service import GatewayError, PaymentGateway
from tradespark.payment_service.schemas import DepositCustomer

logger = logging.getLogger(__name__)


def validate_amount(amount: Decimal | None) -> Decimal:
    if amount is None or not amount.is_finite() or amount <= 0:
        raise bad_request(ErrorCode.INVALID_AMOUNT, ErrorMessage.INVALID_AMOUNT, title="Invalid amount")
    return amount


@dataclass
class DepositOutcome:
    order: PendingOrder
    # True when an earlier navigation event already settled (or is settling) the order
    already_processed: bool


class DepositFlow:
    def __init__(
        self,
        gateway: PaymentGateway,
        db: Session,
        return_marker: str = settings.PAYMENT_RETURN_MARKER,
        currency: str = settings.PAYMENT_CURRENCY,
    ):
        self.gateway = gateway
        self.db = db
        self.return_marker = return_marker
        self.currency = currency

    def is_return_url(self, url: str | None) -> bool:
        return bool(url) and self.return_marker in url

    def get_order(self, order_id: str, auth_id: str) -> PendingOrder:
        order = self.db.query(PendingOrder).filter_by(order_id=order_id, auth_id=auth_id).first()
        if not order:
            raise not_found(ErrorCode.ORDER_NOT_FOUND, ErrorMessage.ORDER_MISSING)
        return order

    async def start(self, customer: DepositCustomer, amount: Decimal) -> PendingOrder:
        amount = validate_amount(amount)

        try:
            result = await self.gateway.create_order(
                amount,
                customer_id=customer.auth_id,
                email=customer.email,
                phone=customer.phone,
            )
        except GatewayError as e:
            logger.error("create-order failed for %s: %s", customer.auth_id, e.message)
            raise bad_request(ErrorCode.ORDER_CREATION_FAILED, e.message)

        if not result.payment_link:
            raise upstream_error(ErrorCode.ORDER_CREATION_FAILED, ErrorMessage.NO_PAYMENT_LINK)
        if not result.order_id:
            raise upstream_error(ErrorCode.ORDER_CREATION_FAILED, "No order id returned by backend")

        existing = self.db.query(PendingOrder).filter_by(order_id=result.order_id).first()
        if existing:
            return existing

        order = PendingOrder(
            order_id=result.order_id,
            auth_id=customer.auth_id,
            user_id=customer.user_id,
            amount=amount,
            currency=self.currency,
            checkout_url=result.payment_link,
            status=OrderStatus.PENDING,
        )

        try:
            self.db.add(order)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return self.db.query(PendingOrder).filter_by(order_id=result.order_id).one()

        self.db.refresh(order)
        logger.info("Deposit order %s created for %s (%s)", order.order_id, customer.auth_id, amount)
        return order

    def _claim(self, order_id: str, auth_id: str) -> bool:
        claimed = (
            self.db.query(PendingOrder)
            .filter_by(order_id=order_id, auth_id=auth_id, status=OrderStatus.PENDING)
            .update({"status": OrderStatus.VERIFYING}, synchronize_session=False)
        )
        self.db.commit()
        return claimed == 1

    def _settle(self, order: PendingOrder, status: str, gateway_status: str | None):
        order.status = status
        order.gateway_status = gateway_status
        order.verified = status == OrderStatus.CONFIRMED
        order.verified_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(order)

    async def handle_navigation(self, order_id: str, url: str | None, auth_id: str) -> DepositOutcome | None:
        if not self.is_return_url(url):
            return None

        order = self.get_order(order_id, auth_id)

        # verify-order runs at most once per order id
        if not self._claim(order_id, auth_id):
            self.db.refresh(order)
            return DepositOutcome(order=order, already_processed=True)

        self.db.refresh(order)

        try:
            result = await self.gateway.verify_order(order.order_id)
            if result.success:
                self._settle(order, OrderStatus.CONFIRMED, result.status)
                logger.info("Deposit order %s confirmed", order.order_id)
            else:
                self._settle(order, OrderStatus.FAILED, result.status)
                logger.warning("Deposit order %s not confirmed: %s", order.order_id, result.status)
        except GatewayError as e:
            self._settle(order, OrderStatus.FAILED, "ERROR")
            logger.error("verify-order failed for %s: %s", order.order_id, e.message)
            raise upstream_error(
                ErrorCode.PAYMENT_VERIFICATION_FAILED,
                e.message,
                title="Error verifying payment",
            )
        finally:
            # a claimed order never stays VERIFYING
            if order.status == OrderStatus.VERIFYING:
                logger.warning("Verification of %s interrupted, marking failed", order.order_id)
                self._settle(order, OrderStatus.FAILED, "INTERRUPTED")

        return DepositOutcome(order=order, already_processed=False)
