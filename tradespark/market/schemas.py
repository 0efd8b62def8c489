from enum import Enum

from pydantic import BaseModel, Field


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class Quote(BaseModel):
    symbol: str
    name: str | None = None
    price: float
    buyPrice: float | None = None
    sellPrice: float | None = None
    change: float = 0


class QuoteDetail(BaseModel):
    symbol: str
    price: float
    change: float = 0
    sellPrice: float
    buyPrice: float
    chart: list[float] = Field(default_factory=list)
    widgetUrl: str


class OpenPositionSchema(BaseModel):
    side: Side
    symbol: str
    quantity: float | str = 0
    price: float = 0


class PositionOut(BaseModel):
    id: str | None = None
    symbol: str
    side: Side
    quantity: int
    entryPrice: float
    total: float | None = None
    createdAt: str | None = None


class TickerUpdate(BaseModel):
    symbol: str
    price: float
    change: float
    changePercent: float
    high: float | None = None
    low: float | None = None
    volume: float | None = None
    eventTime: int | None = None


class DepthLevel(BaseModel):
    price: float
    quantity: float


class DepthUpdate(BaseModel):
    symbol: str
    lastUpdateId: int | None = None
    bids: list[DepthLevel] = Field(default_factory=list)
    asks: list[DepthLevel] = Field(default_factory=list)
