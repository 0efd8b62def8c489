from fastapi import Depends, Request

from tradespark.backend.client import BackendClient
from tradespark.core.auth import AuthSession, get_current_session, resolve_app_user_id
from tradespark.core.config import settings
from tradespark.market.quotes import MarketDataService
from tradespark.market.stream import TickerHub
from tradespark.payment_service.gateway_service import PaymentGateway


def get_backend_client() -> BackendClient:
    return BackendClient(
        settings.SUPABASE_URL,
        settings.SUPABASE_ANON_KEY,
        timeout=settings.HTTP_TIMEOUT,
    )


def get_user_backend(
    session: AuthSession = Depends(get_current_session),
    backend: BackendClient = Depends(get_backend_client),
) -> BackendClient:
    return backend.with_token(session.access_token)


async def get_app_user_id(
    session: AuthSession = Depends(get_current_session),
    backend: BackendClient = Depends(get_user_backend),
) -> str:
    return await resolve_app_user_id(backend, session.auth_id)


def get_payment_gateway() -> PaymentGateway:
    return PaymentGateway(settings.APP_API_BASE_URL, timeout=settings.HTTP_TIMEOUT)


def get_market_service() -> MarketDataService:
    return MarketDataService(
        settings.APP_API_BASE_URL,
        settings.BINANCE_REST_URL,
        timeout=settings.HTTP_TIMEOUT,
    )


def get_ticker_hub(request: Request) -> TickerHub:
    return request.app.state.ticker_hub
