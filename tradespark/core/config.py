from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    SUPABASE_URL: AnyHttpUrl
    SUPABASE_ANON_KEY: str
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_AUDIENCE: str = "authenticated"

    # custom backend: payment proxy and popular quotes
    APP_API_BASE_URL: AnyHttpUrl = "http://localhost:5000"

    PAYMENT_RETURN_MARKER: str = "cf-return"
    PAYMENT_CURRENCY: str = "INR"
    CURRENCY_SYMBOL: str = "₹"

    BINANCE_REST_URL: AnyHttpUrl = "https://api.binance.com"
    BINANCE_STREAM_URL: str = "wss://stream.binance.com:9443/ws"
    FALLBACK_SYMBOLS: list[str] = ["BTCUSDT", "ETHUSDT", "BNBUSDT", "ADAUSDT", "SOLUSDT"]
    CHART_INTERVAL: str = "1h"
    CHART_LIMIT: int = 30
    CHART_WIDGET_URL: str = "https://s.tradingview.com/widgetembed/"

    MARKET_STREAM_MAX_RETRIES: int = 5
    MARKET_STREAM_RETRY_DELAY: float = 3.0

    RESERVED_REFERRAL_CODE: str = "TEST2024"
    REFERRAL_CODE_LENGTH: int = 8
    NEW_USER_WINDOW_SECONDS: int = 10

    OAUTH_PROVIDER: str = "google"
    OAUTH_REDIRECT_URL: str = "tradeapp://auth-callback"
    PASSWORD_RESET_REDIRECT_URL: str = "tradeapp://reset-password"

    DATABASE_URL: str = "sqlite:///./tradespark.db"
    HTTP_TIMEOUT: float = 15
    WALLET_RATE_LIMIT: str = "5/minute"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
