"""Order bracket calculation — pure math, no I/O.

Turns account risk parameters and a live reference price into
stop-loss / take-profit price levels and a position size such that the
dollar loss at the stop never exceeds the configured share of equity.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from aurum.errors import InvalidRiskInput
from aurum.instruments import Instrument

logger = logging.getLogger("aurum")

DIRECTIONS = ("BUY", "SELL")

CROSS_RATE_NOTE = (
    "Approximate: quote currency is not USD; supply a conversion rate "
    "for accurate sizing."
)


@dataclass(frozen=True)
class RiskParameters:
    """Inputs to ``compute_bracket``."""

    instrument: str
    account_equity: float
    direction: str  # "BUY" or "SELL"
    reference_price: Optional[float]
    stop_pips: float = 7
    reward_pips: float = 21
    risk_fraction: float = 0.0025  # 0.25 % of equity per trade
    quote_conversion_rate: Optional[float] = None  # USD per 1 unit of quote ccy


@dataclass(frozen=True)
class OrderBracket:
    """Computed entry bracket for a single market order."""

    instrument: str
    direction: str
    entry_price_used: float
    stop_loss_price: float
    take_profit_price: float
    units: int  # unsigned; see ``signed_units``
    risk_dollars: float
    pip_size: float
    pip_value_per_unit: float
    stop_pips: float
    reward_pips: float
    approx: bool = False
    note: str = ""

    @property
    def signed_units(self) -> int:
        """Units with the broker's sign convention (negative = sell)."""
        return self.units if self.direction == "BUY" else -self.units

    @property
    def lots(self) -> float:
        """Size in standard lots of 100 000 units."""
        return self.units / 100_000


def _pip_value_per_unit(
    instrument: Instrument,
    reference_price: float,
    conversion_rate: Optional[float],
    strict_cross_rates: bool,
) -> tuple[float, bool, str]:
    """Return ``(pip_value, approx, note)`` in account currency (USD)."""
    pip = instrument.pip_size
    if instrument.quote == "USD":
        return pip, False, ""
    if instrument.is_jpy_quoted:
        # JPY per base unit; the price doubles as the FX rate
        return pip / reference_price, False, ""
    if conversion_rate is not None:
        if not math.isfinite(conversion_rate) or conversion_rate <= 0:
            raise InvalidRiskInput(
                f"quote_conversion_rate must be positive, got {conversion_rate}"
            )
        return pip * conversion_rate, False, ""
    if strict_cross_rates:
        raise InvalidRiskInput(
            f"{instrument.name} is a cross pair; a quote conversion rate is required"
        )
    return pip, True, CROSS_RATE_NOTE


def _require_positive(name: str, value: Optional[float]) -> None:
    if value is None or not math.isfinite(value) or value <= 0:
        raise InvalidRiskInput(
            f"{name} must be a positive finite number, got {value}"
        )


def compute_bracket(
    risk: RiskParameters,
    *,
    strict_cross_rates: bool = False,
) -> OrderBracket:
    """Compute SL/TP levels and unit size for one order.

    Formula::

        risk_dollars = account_equity × risk_fraction
        units        = floor(risk_dollars / (stop_pips × pip_value_per_unit))
        BUY:  SL = ref − stop_pips × pip,  TP = ref + reward_pips × pip
        SELL: SL = ref + stop_pips × pip,  TP = ref − reward_pips × pip

    Units are floored so the loss at the stop never exceeds the budget.

    Args:
        risk: The sizing inputs.
        strict_cross_rates: Refuse cross pairs without a
            ``quote_conversion_rate`` instead of approximating.

    Returns:
        An ``OrderBracket``.  ``approx`` is set when the pip value of a
        cross pair had to be approximated as if the quote were USD.

    Raises:
        InvalidRiskInput: On non-positive or non-finite equity, stop
            distance, reward distance, risk fraction or reference price,
            an unknown direction, or a malformed instrument.
    """
    try:
        instrument = Instrument.parse(risk.instrument)
    except ValueError as exc:
        raise InvalidRiskInput(str(exc)) from exc

    direction = str(risk.direction or "").upper()
    if direction not in DIRECTIONS:
        raise InvalidRiskInput(
            f"direction must be 'BUY' or 'SELL', got {risk.direction!r}"
        )
    _require_positive("account_equity", risk.account_equity)
    _require_positive("risk_fraction", risk.risk_fraction)
    _require_positive("stop_pips", risk.stop_pips)
    _require_positive("reward_pips", risk.reward_pips)
    _require_positive("reference_price", risk.reference_price)
    price = risk.reference_price

    pip = instrument.pip_size
    risk_dollars = risk.account_equity * risk.risk_fraction
    pip_value, approx, note = _pip_value_per_unit(
        instrument, price, risk.quote_conversion_rate, strict_cross_rates,
    )
    raw_units = risk_dollars / (risk.stop_pips * pip_value)
    if not math.isfinite(raw_units):
        raise InvalidRiskInput(
            f"position size for {instrument.name} is not a finite number"
        )
    units = math.floor(raw_units)

    stop_dist = risk.stop_pips * pip
    reward_dist = risk.reward_pips * pip
    if direction == "BUY":
        sl_price = price - stop_dist
        tp_price = price + reward_dist
    else:
        sl_price = price + stop_dist
        tp_price = price - reward_dist

    if approx:
        logger.warning(
            "Approximate sizing for cross pair %s: pip value assumed in USD",
            instrument.name,
        )

    return OrderBracket(
        instrument=instrument.name,
        direction=direction,
        entry_price_used=price,
        stop_loss_price=instrument.round_price(sl_price),
        take_profit_price=instrument.round_price(tp_price),
        units=units,
        risk_dollars=risk_dollars,
        pip_size=pip,
        pip_value_per_unit=pip_value,
        stop_pips=risk.stop_pips,
        reward_pips=risk.reward_pips,
        approx=approx,
        note=note,
    )
