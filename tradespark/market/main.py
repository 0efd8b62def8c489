from fastapi import APIRouter, Depends

from tradespark.backend.client import BackendClient
from tradespark.core.auth import AuthSession, get_current_session
from tradespark.core.dependencies import get_market_service, get_user_backend
from tradespark.core.errors import ErrorCode, ErrorMessage, upstream_error
from tradespark.market.positions import PositionService
from tradespark.market.quotes import MarketDataError, MarketDataService, filter_quotes
from tradespark.market.schemas import OpenPositionSchema

router = APIRouter(prefix="/api/market", tags=["Market"])


def get_position_service(
    session: AuthSession = Depends(get_current_session),
    backend: BackendClient = Depends(get_user_backend),
) -> PositionService:
    return PositionService(backend, session)


@router.get("/quotes")
async def list_quotes(search: str | None = None, market: MarketDataService = Depends(get_market_service)):
    try:
        quotes = await market.popular_quotes()
    except MarketDataError:
        raise upstream_error(ErrorCode.MARKET_DATA_UNAVAILABLE, ErrorMessage.MARKET_DATA_UNAVAILABLE)
    return {"success": True, "data": filter_quotes(quotes, search)}


@router.get("/quotes/{symbol:path}")
async def quote_detail(
    symbol: str,
    price: float | None = None,
    change: float | None = None,
    market: MarketDataService = Depends(get_market_service),
):
    try:
        detail = await market.quote_detail(symbol, price, change)
    except MarketDataError:
        raise upstream_error(ErrorCode.MARKET_DATA_UNAVAILABLE, ErrorMessage.MARKET_DATA_UNAVAILABLE)
    return {"success": True, "data": detail}


@router.get("/positions")
async def list_positions(positions: PositionService = Depends(get_position_service)):
    return {"success": True, "data": await positions.list_positions()}


@router.post("/positions")
async def open_position(
    req: OpenPositionSchema,
    positions: PositionService = Depends(get_position_service),
):
    position = await positions.open_position(req.side, req.symbol, req.quantity, req.price)
    return {
        "success": True,
        "data": {
            "title": "Trade placed",
            "message": f"{position.side.value} {position.quantity} {position.symbol} @ {position.entryPrice}",
            "position": position,
        },
    }
