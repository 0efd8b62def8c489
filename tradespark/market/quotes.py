import logging
from urllib.parse import urlencode

import httpx

from tradespark.core.config import settings
from tradespark.market.schemas import Quote, QuoteDetail

logger = logging.getLogger(__name__)

SELL_FACTOR = 0.999
BUY_FACTOR = 1.001


class MarketDataError(Exception):
    pass


def market_symbol(symbol: str) -> str:
    """``BTC/USDT`` -> ``BTCUSDT``"""
    return symbol.replace("/", "").strip().upper()


def display_symbol(symbol: str) -> str:
    return symbol.replace("USDT", "/USDT") if "/" not in symbol else symbol


def filter_quotes(quotes: list[Quote], search: str | None) -> list[Quote]:
    term = (search or "").strip().lower()
    if not term:
        return quotes
    return [
        q for q in quotes
        if term in q.symbol.lower() or term in (q.name or "").lower()
    ]


def widget_url(symbol: str, interval: str = "60") -> str:
    params = {"symbol": f"BINANCE:{market_symbol(symbol)}", "interval": interval, "theme": "dark"}
    return f"{settings.CHART_WIDGET_URL}?{urlencode(params)}"


def _ticker_to_quote(row: dict) -> Quote:
    last = float(row["lastPrice"])
    return Quote(
        symbol=display_symbol(row["symbol"]),
        price=last,
        buyPrice=float(row.get("bidPrice") or last),
        sellPrice=float(row.get("askPrice") or last),
        change=float(row.get("priceChangePercent") or 0),
    )


class MarketDataService:
    def __init__(
        self,
        app_api_url,
        binance_url,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 15,
        fallback_symbols: list[str] | None = None,
    ):
        self.app_api_url = str(app_api_url).rstrip("/")
        self.binance_url = str(binance_url).rstrip("/")
        self.transport = transport
        self.timeout = timeout
        self.fallback_symbols = fallback_symbols or settings.FALLBACK_SYMBOLS

    def _client(self, base_url: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=base_url, transport=self.transport, timeout=self.timeout)

    async def _popular_from_app(self) -> list[Quote]:
        async with self._client(self.app_api_url) as client:
            resp = await client.get("/stocks/popular")
            resp.raise_for_status()
            payload = resp.json()
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            raise ValueError("Unexpected /stocks/popular payload")
        return [Quote(**item) for item in data]

    async def _popular_from_binance(self) -> list[Quote]:
        async with self._client(self.binance_url) as client:
            resp = await client.get("/api/v3/ticker/24hr")
            resp.raise_for_status()
            rows = resp.json()
        wanted = set(self.fallback_symbols)
        return [_ticker_to_quote(row) for row in rows if row.get("symbol") in wanted]

    async def popular_quotes(self) -> list[Quote]:
        try:
            quotes = await self._popular_from_app()
            if quotes:
                return quotes
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("popular API failed, falling back to public: %s", e)

        try:
            return await self._popular_from_binance()
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.error("binance fallback failed: %s", e)
            raise MarketDataError("Failed to load market data") from e

    async def ticker(self, symbol: str) -> Quote:
        try:
            async with self._client(self.binance_url) as client:
                resp = await client.get("/api/v3/ticker/24hr", params={"symbol": market_symbol(symbol)})
                resp.raise_for_status()
                return _ticker_to_quote(resp.json())
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.error("ticker fetch failed for %s: %s", symbol, e)
            raise MarketDataError("Failed to load market data") from e

    async def chart(self, symbol: str) -> list[float]:
        params = {
            "symbol": market_symbol(symbol),
            "interval": settings.CHART_INTERVAL,
            "limit": settings.CHART_LIMIT,
        }
        try:
            async with self._client(self.binance_url) as client:
                resp = await client.get("/api/v3/klines", params=params)
                resp.raise_for_status()
                return [float(k[4]) for k in resp.json()]
        except (httpx.HTTPError, ValueError, IndexError) as e:
            # detail view renders without a chart
            logger.warning("chart fetch error for %s: %s", symbol, e)
            return []

    async def quote_detail(
        self,
        symbol: str,
        price: float | None = None,
        change: float | None = None,
    ) -> QuoteDetail:
        if price is None:
            quote = await self.ticker(symbol)
            price = quote.price
            change = quote.change if change is None else change

        return QuoteDetail(
            symbol=display_symbol(market_symbol(symbol)),
            price=price,
            change=change or 0,
            sellPrice=round(price * SELL_FACTOR, 2),
            buyPrice=round(price * BUY_FACTOR, 2),
            chart=await self.chart(symbol),
            widgetUrl=widget_url(symbol),
        )
