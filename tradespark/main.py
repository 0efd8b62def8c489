import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from tradespark.core.auth import AuthSession, get_optional_session, resolve_route
from tradespark.core.exceptions import AppException
from tradespark.core.handlers import app_exception_handler
from tradespark.core.init_db import init_db
from tradespark.core.logging_config import setup_logging
from tradespark.core.rate_limit import limiter
from tradespark.market.main import router as market_router
from tradespark.market.stream import TickerHub
from tradespark.sockets.ticker_socket import ticker_socket
from tradespark.stats.main import router as stats_router
from tradespark.transactions.main import router as transaction_router
from tradespark.users.auth import router as auth_router
from tradespark.users.users import router as profile_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    init_db()
    app.state.ticker_hub = TickerHub()
    logger.info("Trade Spark API started")
    yield
    await app.state.ticker_hub.shutdown()
    logger.info("Trade Spark API stopped")


app = FastAPI(title="Trade Spark API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(AppException, app_exception_handler)

app.include_router(auth_router)
app.include_router(profile_router)
app.include_router(transaction_router)
app.include_router(market_router)
app.include_router(stats_router)


@app.get("/api/session")
def session_gate(session: AuthSession | None = Depends(get_optional_session)):
    return {
        "success": True,
        "data": {
            "route": resolve_route(session),
            "authId": session.auth_id if session else None,
            "email": session.email if session else None,
        },
    }


@app.websocket("/ws/ticker")
async def websocket_endpoint(websocket: WebSocket):
    await ticker_socket(websocket)


@app.get("/")
def health_check():
    return {"status": "healthy", "version": "1.0.0"}
