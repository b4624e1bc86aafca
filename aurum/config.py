"""Aurum — application configuration.

Loads .env variables into a typed config object.
Validates required variables on startup.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv


_REQUIRED_VARS = [
    "OANDA_ACCOUNT_ID",
    "OANDA_API_TOKEN",
    "OANDA_ENVIRONMENT",
]

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    oanda_account_id: str
    oanda_api_token: str
    oanda_environment: str  # "practice" or "live"
    risk_fraction: float
    stop_pips: int
    price_source: str  # "mid", "bid" or "ask"
    strict_cross_rates: bool
    allow_multiple_trades: bool
    history_lookback_days: int
    db_path: str
    log_level: str
    health_port: int

    @property
    def oanda_base_url(self) -> str:
        """Return the OANDA v20 API base URL based on environment."""
        if self.oanda_environment == "live":
            return "https://api-fxtrade.oanda.com"
        return "https://api-fxpractice.oanda.com"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in _TRUE_VALUES


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the missing variable when a
    required variable is absent.
    """
    load_dotenv(dotenv_path=env_path)

    missing = [v for v in _REQUIRED_VARS if not os.environ.get(v)]
    if missing:
        raise ValueError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        )

    price_source = os.environ.get("PRICE_SOURCE", "mid").lower()
    if price_source not in ("mid", "bid", "ask"):
        raise ValueError(
            f"PRICE_SOURCE must be 'mid', 'bid' or 'ask', got '{price_source}'"
        )

    return Config(
        oanda_account_id=os.environ["OANDA_ACCOUNT_ID"],
        oanda_api_token=os.environ["OANDA_API_TOKEN"],
        oanda_environment=os.environ.get("OANDA_ENVIRONMENT", "practice"),
        risk_fraction=float(os.environ.get("RISK_FRACTION", "0.0025")),
        stop_pips=int(os.environ.get("STOP_PIPS", "7")),
        price_source=price_source,
        strict_cross_rates=_env_flag("STRICT_CROSS_RATES"),
        allow_multiple_trades=_env_flag("ALLOW_MULTIPLE_TRADES"),
        history_lookback_days=int(os.environ.get("HISTORY_LOOKBACK_DAYS", "365")),
        db_path=os.environ.get("DB_PATH", "data/aurum.db"),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        health_port=int(os.environ.get("HEALTH_PORT", "8080")),
    )
