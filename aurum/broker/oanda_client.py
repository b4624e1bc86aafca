"""OANDA v20 REST API async client.

Handles all communication with OANDA: account queries, pricing, order
placement, trade summaries, and the transaction log.
"""

import asyncio
import logging
import re
from typing import Optional

import httpx

from aurum.broker.models import (
    AccountSummary,
    OrderRequest,
    OrderResponse,
    Quote,
    TradeSummary,
)
from aurum.config import Config
from aurum.errors import OrderRejected
from aurum.instruments import Instrument

logger = logging.getLogger("aurum")

# Retry settings
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 2.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}

_ZERO_WIDTH_RE = re.compile(r"[\u200b-\u200d\ufeff]")


def normalize_account_id(account_id) -> str:
    """Strip whitespace and zero-width characters pasted along with an id."""
    if account_id is None:
        return ""
    return _ZERO_WIDTH_RE.sub("", str(account_id)).strip()


def _float(value) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def _parse_quote(p: dict) -> Quote:
    bids = p.get("bids") or []
    asks = p.get("asks") or []
    return Quote(
        instrument=p.get("instrument", ""),
        bid=_float(bids[0].get("price")) if bids else None,
        ask=_float(asks[0].get("price")) if asks else None,
        closeout_bid=_float(p.get("closeoutBid")),
        closeout_ask=_float(p.get("closeoutAsk")),
        tradeable=bool(p.get("tradeable", True)),
        status=p.get("status", ""),
        time=p.get("time", ""),
    )


def _parse_trade(t: dict) -> TradeSummary:
    sl_price = None
    tp_price = None
    if "stopLossOrder" in t:
        sl_price = _float(t["stopLossOrder"].get("price"))
    if "takeProfitOrder" in t:
        tp_price = _float(t["takeProfitOrder"].get("price"))
    return TradeSummary(
        trade_id=str(t["id"]),
        instrument=t.get("instrument", ""),
        state=t.get("state", "OPEN"),
        initial_units=float(t.get("initialUnits", t.get("currentUnits", "0"))),
        current_units=float(t.get("currentUnits", "0")),
        price=_float(t.get("price")),
        realized_pnl=_float(t.get("realizedPL")),
        unrealized_pnl=_float(t.get("unrealizedPL")),
        average_close_price=_float(t.get("averageClosePrice")),
        open_time=t.get("openTime"),
        close_time=t.get("closeTime"),
        stop_loss_price=sl_price,
        take_profit_price=tp_price,
    )


def _rejection_reason(data: dict) -> str:
    """Pull the most specific rejection reason out of an order response."""
    for key in ("orderRejectTransaction", "orderCancelTransaction"):
        txn = data.get(key)
        if txn and txn.get("rejectReason"):
            return txn["rejectReason"]
        if txn and txn.get("reason"):
            return txn["reason"]
    return data.get("errorMessage") or "order was not filled"


class OandaClient:
    """Async client wrapping OANDA v20 REST API.

    Every account-scoped call takes an optional ``account_id``; the
    configured account is used when it is omitted.
    """

    def __init__(self, config: Config) -> None:
        self._config = config
        self._base_url = config.oanda_base_url
        self._account_id = normalize_account_id(config.oanda_account_id)
        self._headers = {
            "Authorization": f"Bearer {config.oanda_api_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _account_url(self, account_id: Optional[str]) -> str:
        acct = normalize_account_id(account_id) or self._account_id
        if not acct:
            raise ValueError("Account ID is required")
        return f"{self._base_url}/v3/accounts/{acct}"

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        retry: bool = True,
        **kwargs,
    ) -> httpx.Response:
        """Execute an HTTP request with exponential-backoff retry.

        Retries on transient server errors (502, 503, 504) and rate-limits
        (429).  Non-retryable errors are raised immediately.  With
        ``retry=False`` the request is sent exactly once, for calls that
        are not safe to repeat (order placement).
        """
        last_exc: Optional[Exception] = None
        attempts = _MAX_RETRIES if retry else 1

        for attempt in range(attempts):
            try:
                async with httpx.AsyncClient() as client:
                    resp = await getattr(client, method)(
                        url,
                        headers=self._headers,
                        timeout=30.0,
                        **kwargs,
                    )

                if retry and resp.status_code in _RETRYABLE_STATUS_CODES:
                    delay = _RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "OANDA %s %s returned %d — retry %d/%d in %.1fs",
                        method.upper(), url, resp.status_code,
                        attempt + 1, _MAX_RETRIES, delay,
                    )
                    await asyncio.sleep(delay)
                    last_exc = httpx.HTTPStatusError(
                        f"Server error '{resp.status_code}'",
                        request=resp.request,
                        response=resp,
                    )
                    continue

                resp.raise_for_status()
                return resp

            except httpx.TransportError as exc:
                if not retry:
                    raise
                delay = _RETRY_BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "OANDA %s %s transport error (%s) — retry %d/%d in %.1fs",
                    method.upper(), url, exc,
                    attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = exc
                await asyncio.sleep(delay)

        # All retries exhausted — raise the last error
        raise last_exc  # type: ignore[misc]

    # ── Account ──────────────────────────────────────────────────────────

    async def get_account_summary(self, account_id: Optional[str] = None) -> AccountSummary:
        """Query OANDA for account balance, equity, and open trade count."""
        url = f"{self._account_url(account_id)}/summary"

        resp = await self._request_with_retry("get", url)

        acct = resp.json()["account"]
        return AccountSummary(
            account_id=acct["id"],
            balance=float(acct["balance"]),
            equity=float(acct["NAV"]),
            open_trade_count=int(acct.get("openTradeCount", 0)),
            currency=acct["currency"],
            margin_available=_float(acct.get("marginAvailable")),
        )

    # ── Pricing ──────────────────────────────────────────────────────────

    async def get_pricing(
        self,
        instruments: list[str],
        account_id: Optional[str] = None,
    ) -> list[Quote]:
        """Return the current quote for each of *instruments*."""
        url = f"{self._account_url(account_id)}/pricing"
        params = {"instruments": ",".join(instruments)}

        resp = await self._request_with_retry("get", url, params=params)

        return [_parse_quote(p) for p in resp.json().get("prices", [])]

    async def get_quote(
        self,
        instrument: str,
        account_id: Optional[str] = None,
    ) -> Optional[Quote]:
        """Return the quote for one instrument, or ``None`` if not priced."""
        quotes = await self.get_pricing([instrument], account_id)
        for quote in quotes:
            if quote.instrument == instrument:
                return quote
        return quotes[0] if quotes else None

    # ── Orders ───────────────────────────────────────────────────────────

    async def place_order(
        self,
        order: OrderRequest,
        account_id: Optional[str] = None,
    ) -> OrderResponse:
        """Place a fill-or-kill market order with stop-loss and take-profit.

        Args:
            order: ``OrderRequest`` with instrument, signed units, SL, and TP.
            account_id: Broker account to trade on.

        Returns:
            ``OrderResponse`` with the fill details.

        Raises:
            OrderRejected: If OANDA rejects the order or does not fill it.
        """
        url = f"{self._account_url(account_id)}/orders"
        instrument = Instrument.parse(order.instrument)
        body = {
            "order": {
                "type": "MARKET",
                "instrument": instrument.name,
                "units": str(int(order.units)),
                "timeInForce": "FOK",
                "positionFill": "REDUCE_FIRST",
                "stopLossOnFill": {
                    "price": instrument.format_price(order.stop_loss_price),
                },
                "takeProfitOnFill": {
                    "price": instrument.format_price(order.take_profit_price),
                },
            }
        }

        try:
            resp = await self._request_with_retry("post", url, json=body, retry=False)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code in _RETRYABLE_STATUS_CODES:
                raise
            try:
                data = exc.response.json()
            except ValueError:
                data = {}
            raise OrderRejected(
                _rejection_reason(data), exc.response.status_code,
            ) from exc

        data = resp.json()
        fill = data.get("orderFillTransaction")
        if not fill:
            raise OrderRejected(_rejection_reason(data))
        opened = fill.get("tradeOpened") or {}
        return OrderResponse(
            order_id=fill["id"],
            trade_id=opened.get("tradeID"),
            instrument=fill["instrument"],
            units=float(fill["units"]),
            price=float(fill["price"]),
            time=fill["time"],
        )

    # ── Trades ───────────────────────────────────────────────────────────

    async def list_open_trades(self, account_id: Optional[str] = None) -> list[TradeSummary]:
        """Return all open trades with SL/TP details."""
        url = f"{self._account_url(account_id)}/openTrades"

        resp = await self._request_with_retry("get", url)

        return [_parse_trade(t) for t in resp.json().get("trades", [])]

    async def list_trades(
        self,
        state: str = "CLOSED",
        count: int = 500,
        account_id: Optional[str] = None,
    ) -> list[TradeSummary]:
        """Return trade summaries filtered by *state* (``CLOSED``, ``ALL``...)."""
        url = f"{self._account_url(account_id)}/trades"
        params = {"state": state, "count": count}

        resp = await self._request_with_retry("get", url, params=params)

        return [_parse_trade(t) for t in resp.json().get("trades", [])]

    # ── Transactions ─────────────────────────────────────────────────────

    async def fetch_transactions(
        self,
        account_id: Optional[str] = None,
        from_time: Optional[str] = None,
        to_time: Optional[str] = None,
        page_size: int = 1000,
    ) -> list[dict]:
        """Return raw transaction dicts for a time window.

        OANDA answers with either the transactions themselves or a root
        listing page URLs; pages are fetched in order and concatenated.
        """
        url = f"{self._account_url(account_id)}/transactions"
        params: dict = {"pageSize": page_size}
        if from_time:
            params["from"] = from_time
        if to_time:
            params["to"] = to_time

        resp = await self._request_with_retry("get", url, params=params)

        root = resp.json()
        if "transactions" in root:
            return list(root["transactions"])

        transactions: list[dict] = []
        for page_url in root.get("pages", []):
            page = await self._request_with_retry("get", page_url)
            transactions.extend(page.json().get("transactions", []))
        logger.debug(
            "Fetched %d transaction(s) across %d page(s)",
            len(transactions), len(root.get("pages", [])),
        )
        return transactions
