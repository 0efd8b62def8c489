import asyncio
import contextlib
import json
import logging
from typing import Any, Awaitable, Callable

import websockets
from websockets.exceptions import WebSocketException

from tradespark.core.config import settings
from tradespark.market.schemas import DepthLevel, DepthUpdate, TickerUpdate
from tradespark.sockets.manager import ConnectionManager

logger = logging.getLogger(__name__)

TICKER = "ticker"
DEPTH = "depth5"
CHANNELS = (TICKER, DEPTH)

Update = TickerUpdate | DepthUpdate
OnUpdate = Callable[[Update], Awaitable[None]]


def stream_url(base_url: str, symbol: str, channel: str = TICKER) -> str:
    return f"{base_url.rstrip('/')}/{symbol.replace('/', '').lower()}@{channel}"


def parse_ticker(payload: dict) -> TickerUpdate:
    return TickerUpdate(
        symbol=payload["s"],
        price=float(payload["c"]),
        change=float(payload.get("p") or 0),
        changePercent=float(payload.get("P") or 0),
        high=float(payload["h"]) if "h" in payload else None,
        low=float(payload["l"]) if "l" in payload else None,
        volume=float(payload["v"]) if "v" in payload else None,
        eventTime=payload.get("E"),
    )


def parse_depth(symbol: str, payload: dict) -> DepthUpdate:
    def levels(rows):
        return [DepthLevel(price=float(p), quantity=float(q)) for p, q in rows]

    return DepthUpdate(
        symbol=symbol.replace("/", "").upper(),
        lastUpdateId=payload.get("lastUpdateId"),
        bids=levels(payload.get("bids", [])),
        asks=levels(payload.get("asks", [])),
    )


class TickerStream:
    """One market-data socket with bounded linear reconnect.

    A failed connection attempt waits ``retry_delay`` and tries again, at
    most ``max_retries`` times in a row. Any delivered message resets the
    count. There is no backoff.
    """

    def __init__(
        self,
        symbol: str,
        on_update: OnUpdate,
        channel: str = TICKER,
        base_url: str = settings.BINANCE_STREAM_URL,
        max_retries: int = settings.MARKET_STREAM_MAX_RETRIES,
        retry_delay: float = settings.MARKET_STREAM_RETRY_DELAY,
        connect: Callable[[str], Any] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_failed: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        if channel not in CHANNELS:
            raise ValueError(f"Unknown channel {channel!r}")
        self.symbol = symbol
        self.channel = channel
        self.url = stream_url(base_url, symbol, channel)
        self.on_update = on_update
        self.on_failed = on_failed
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._connect = connect or websockets.connect
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self.status = "offline"
        self.failures = 0
        self.last_error: str | None = None

    def parse(self, raw: str | bytes) -> Update | None:
        try:
            payload = json.loads(raw)
            if self.channel == TICKER:
                return parse_ticker(payload)
            return parse_depth(self.symbol, payload)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Dropping malformed %s message: %s", self.url, e)
            return None

    async def _consume(self) -> None:
        async with self._connect(self.url) as ws:
            self.status = "online"
            async for raw in ws:
                self.failures = 0
                update = self.parse(raw)
                if update is None:
                    continue
                try:
                    await self.on_update(update)
                except Exception:
                    # a subscriber-side failure never ends the upstream loop
                    logger.exception("Update handler failed for %s", self.url)

    async def run(self) -> None:
        self.failures = 0
        while True:
            self.status = "connecting"
            try:
                await self._consume()
                self.last_error = "connection closed"
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                self.last_error = str(e) or e.__class__.__name__

            self.failures += 1
            self.status = "offline"
            if self.failures >= self.max_retries:
                logger.error(
                    "Giving up on %s after %d attempts: %s", self.url, self.failures, self.last_error
                )
                self.status = "failed"
                if self.on_failed is not None:
                    await self.on_failed()
                return

            logger.warning(
                "Stream %s dropped (%s), retry %d/%d in %ss",
                self.url, self.last_error, self.failures, self.max_retries, self.retry_delay,
            )
            await self._sleep(self.retry_delay)

    @property
    def alive(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if not self._task or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self.status = "offline"


class TickerHub:
    """Shares one upstream stream per symbol/channel among websocket clients."""

    def __init__(self, manager: ConnectionManager | None = None, stream_factory: Callable[..., TickerStream] = TickerStream):
        self.manager = manager or ConnectionManager()
        self.stream_factory = stream_factory
        self.streams: dict[str, TickerStream] = {}

    @staticmethod
    def key(symbol: str, channel: str) -> str:
        return f"{symbol.replace('/', '').lower()}@{channel}"

    async def subscribe(self, symbol: str, channel: str, websocket) -> str:
        key = self.key(symbol, channel)
        await self.manager.connect(key, websocket)

        stream = self.streams.get(key)
        if stream is None or not stream.alive:
            if stream is not None:
                logger.info("Replacing finished stream %s (%s)", key, stream.status)
                await stream.stop()
            stream = self.stream_factory(
                symbol,
                on_update=lambda update: self.publish(key, channel, update),
                channel=channel,
                on_failed=lambda: self.manager.broadcast(
                    key, {"event": "error", "message": "Market stream unavailable"}
                ),
            )
            self.streams[key] = stream
            stream.start()
            logger.info("Started stream %s", key)
        return key

    async def unsubscribe(self, key: str, websocket) -> None:
        self.manager.disconnect(key, websocket)
        if self.manager.has_subscribers(key):
            return
        stream = self.streams.pop(key, None)
        if stream is not None:
            await stream.stop()
            logger.info("Stopped stream %s, no subscribers left", key)

    async def publish(self, key: str, channel: str, update: Update) -> None:
        await self.manager.broadcast(key, {"event": channel, "data": update.model_dump()})

    async def shutdown(self) -> None:
        streams, self.streams = list(self.streams.values()), {}
        for stream in streams:
            await stream.stop()
