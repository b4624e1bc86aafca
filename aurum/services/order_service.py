"""Order placement workflow.

Connects the account store, live pricing, the bracket calculator and the
broker: account checks → session rule → live price → bracket → order →
persist.  All broker data is awaited before the bracket is computed.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import httpx

from aurum.broker.models import OrderRequest, OrderResponse
from aurum.broker.oanda_client import OandaClient
from aurum.broker.pricing import select_reference_price
from aurum.config import Config
from aurum.errors import (
    AccountNotActive,
    AccountNotFound,
    InvalidRiskInput,
    OrderRejected,
    OrderStatusUnknown,
    PriceUnavailable,
)
from aurum.instruments import normalize_instrument
from aurum.repos.account_repo import AccountRepo, TradingAccount
from aurum.repos.order_repo import OrderRepo
from aurum.risk.bracket import OrderBracket, RiskParameters, compute_bracket
from aurum.risk.plans import reward_pips_for
from aurum.risk.session_guard import SessionGuard
from aurum.timeutils import utc_now

logger = logging.getLogger("aurum")


@dataclass(frozen=True)
class PlacementResult:
    """Outcome of a filled order."""

    order_id: int
    bracket: OrderBracket
    fill: OrderResponse


class OrderService:
    """Sizes and places market orders for trading accounts.

    Args:
        config: Application configuration.
        broker: An ``OandaClient`` (or compatible duck-type / mock).
        account_repo: Source of trading accounts.
        order_repo: Store for placed orders.
        session_guard: One-trade-per-session rule; built from *order_repo*
            and ``config.allow_multiple_trades`` when omitted.
    """

    def __init__(
        self,
        config: Config,
        broker: OandaClient,
        account_repo: AccountRepo,
        order_repo: OrderRepo,
        session_guard: Optional[SessionGuard] = None,
    ) -> None:
        self._config = config
        self._broker = broker
        self._account_repo = account_repo
        self._order_repo = order_repo
        self._session_guard = session_guard or SessionGuard(
            order_repo, enabled=not config.allow_multiple_trades,
        )

    def _load_account(self, account_id: int) -> TradingAccount:
        account = self._account_repo.get_account(account_id)
        if account is None:
            raise AccountNotFound(f"Trading account {account_id} not found")
        if not account.is_active:
            raise AccountNotActive(
                "Account not active or not provisioned. "
                "Please wait for admin approval."
            )
        return account

    async def _live_price(self, account: TradingAccount, instrument: str) -> float:
        """Fetch the live reference price; never falls back to another price."""
        try:
            quote = await self._broker.get_quote(
                instrument, account.broker_account_id,
            )
        except httpx.HTTPError as exc:
            logger.error("Pricing fetch failed for %s: %s", instrument, exc)
            raise PriceUnavailable(instrument, "broker request failed") from exc

        price = select_reference_price(quote, self._config.price_source)
        if price is None:
            status = (quote.status if quote else "") or "unavailable"
            raise PriceUnavailable(instrument, status)
        logger.info("Reference price for %s: %s", instrument, price)
        return price

    async def _size(
        self,
        account: TradingAccount,
        instrument: str,
        side: str,
    ) -> OrderBracket:
        try:
            instrument = normalize_instrument(instrument)
        except ValueError as exc:
            raise InvalidRiskInput(str(exc)) from exc
        price = await self._live_price(account, instrument)
        return compute_bracket(
            RiskParameters(
                instrument=instrument,
                account_equity=account.risk_equity,
                direction=side,
                reference_price=price,
                stop_pips=self._config.stop_pips,
                reward_pips=reward_pips_for(account.plan_type),
                risk_fraction=self._config.risk_fraction,
            ),
            strict_cross_rates=self._config.strict_cross_rates,
        )

    async def preview(self, account_id: int, instrument: str, side: str) -> OrderBracket:
        """Return the bracket an order would use right now, without placing it."""
        account = self._load_account(account_id)
        return await self._size(account, instrument, side)

    async def place(
        self,
        account_id: int,
        instrument: str,
        side: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PlacementResult:
        """Size and submit a market order for *account_id*.

        Raises:
            AccountNotFound: Unknown account.
            AccountNotActive: Account not approved or not linked.
            SessionLimitReached: Already traded this session.
            PriceUnavailable: No live price.
            InvalidRiskInput: Inputs cannot be sized (or size to zero units).
            OrderRejected: The broker refused or did not fill the order.
            OrderStatusUnknown: The order was sent but its outcome is unknown;
                it still counts toward the session limit.
        """
        now = now or utc_now()
        account = self._load_account(account_id)
        self._session_guard.check(account.id, now)

        bracket = await self._size(account, instrument, side)
        if bracket.units < 1:
            raise InvalidRiskInput(
                f"Risk budget ${bracket.risk_dollars:.2f} is too small to "
                f"trade a {bracket.stop_pips}-pip stop on {bracket.instrument}"
            )

        placed_at = now.isoformat(timespec="seconds")
        order = OrderRequest(
            instrument=bracket.instrument,
            units=bracket.signed_units,
            stop_loss_price=bracket.stop_loss_price,
            take_profit_price=bracket.take_profit_price,
        )
        logger.info(
            "Placing %s %s x%d (SL %s, TP %s) for account %s",
            bracket.direction, bracket.instrument, bracket.units,
            bracket.stop_loss_price, bracket.take_profit_price, account.id,
        )

        try:
            fill = await self._broker.place_order(order, account.broker_account_id)
        except OrderRejected as exc:
            logger.warning("Order rejected for account %s: %s", account.id, exc.reason)
            self._order_repo.insert_order(
                account_id=account.id,
                bracket=bracket,
                status="rejected",
                placed_at=placed_at,
                reason=reason,
                reject_reason=exc.reason,
            )
            raise
        except httpx.HTTPError as exc:
            detail = str(exc) or type(exc).__name__
            logger.error(
                "Order for account %s sent but not confirmed: %s", account.id, detail,
            )
            self._order_repo.insert_order(
                account_id=account.id,
                bracket=bracket,
                status="unknown",
                placed_at=placed_at,
                reason=reason,
                reject_reason=detail,
            )
            raise OrderStatusUnknown(bracket.instrument, detail) from exc

        order_id = self._order_repo.insert_order(
            account_id=account.id,
            bracket=bracket,
            status="filled",
            placed_at=placed_at,
            entry_price=fill.price,
            broker_order_id=fill.order_id,
            broker_trade_id=fill.trade_id,
            reason=reason,
        )
        logger.info(
            "Order %d filled at %s (broker trade %s)",
            order_id, fill.price, fill.trade_id,
        )
        return PlacementResult(order_id=order_id, bracket=bracket, fill=fill)
