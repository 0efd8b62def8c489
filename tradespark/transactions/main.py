from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from tradespark.backend.client import BackendClient
from tradespark.core.auth import AuthSession, get_current_session
from tradespark.core.config import settings
from tradespark.core.database import get_db
from tradespark.core.dependencies import get_payment_gateway, get_user_backend
from tradespark.core.rate_limit import limiter
from tradespark.payment_service.gateway_service import PaymentGateway
from tradespark.payment_service.schemas import PendingOrderOut
from tradespark.transactions.deposit_flow import DepositFlow
from tradespark.transactions.schemas import (
    DepositRequest,
    DepositStartedResponse,
    NavigationEvent,
    NavigationResponse,
    WalletResponse,
    WithdrawRequest,
    WithdrawalResponse,
)
from tradespark.transactions.service import WalletService

router = APIRouter(prefix="/api/wallet", tags=["Wallet"])


def get_wallet_service(
    session: AuthSession = Depends(get_current_session),
    backend: BackendClient = Depends(get_user_backend),
) -> WalletService:
    return WalletService(backend, session)


def get_deposit_flow(
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: Session = Depends(get_db),
) -> DepositFlow:
    return DepositFlow(gateway, db)


@router.get("", response_model=WalletResponse)
async def wallet_overview(wallet: WalletService = Depends(get_wallet_service)):
    return {"success": True, "data": await wallet.snapshot()}


@router.post("/deposits", response_model=DepositStartedResponse)
@limiter.limit(settings.WALLET_RATE_LIMIT)
async def start_deposit(
    request: Request,
    payload: DepositRequest,
    wallet: WalletService = Depends(get_wallet_service),
    flow: DepositFlow = Depends(get_deposit_flow),
):
    return {"success": True, "data": await wallet.start_deposit(flow, payload.amount)}


@router.post("/deposits/{order_id}/navigation", response_model=NavigationResponse)
async def deposit_navigation(
    order_id: str,
    event: NavigationEvent,
    wallet: WalletService = Depends(get_wallet_service),
    flow: DepositFlow = Depends(get_deposit_flow),
):
    return {"success": True, "data": await wallet.handle_navigation(flow, order_id, event.url)}


@router.get("/deposits/{order_id}")
def deposit_status(
    order_id: str,
    session: AuthSession = Depends(get_current_session),
    flow: DepositFlow = Depends(get_deposit_flow),
):
    order = flow.get_order(order_id, session.auth_id)
    return {
        "success": True,
        "data": PendingOrderOut(
            orderId=order.order_id,
            amount=order.amount,
            currency=order.currency,
            checkoutUrl=order.checkout_url,
            status=order.status,
            verified=order.verified,
        ),
    }


@router.post("/withdrawals", response_model=WithdrawalResponse)
@limiter.limit(settings.WALLET_RATE_LIMIT)
async def withdraw(
    request: Request,
    payload: WithdrawRequest,
    wallet: WalletService = Depends(get_wallet_service),
):
    return {"success": True, "data": await wallet.withdraw(payload.amount)}
