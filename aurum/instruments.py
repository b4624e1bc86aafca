"""Instrument metadata — pip conventions derived from the pair identifier.

Everything here is pure and derived from the identifier string alone.
"""

import re
from dataclasses import dataclass

_PAIR_RE = re.compile(r"^([A-Z]{3})[_/]([A-Z]{3})$")

JPY_PIP_SIZE = 0.01
DEFAULT_PIP_SIZE = 0.0001


@dataclass(frozen=True)
class Instrument:
    """A currency pair such as ``EUR_USD``."""

    base: str
    quote: str

    @classmethod
    def parse(cls, name: str) -> "Instrument":
        """Build an ``Instrument`` from ``"EUR_USD"`` or ``"EUR/USD"``.

        Raises:
            ValueError: If *name* is not a ``BASE_QUOTE`` pair.
        """
        match = _PAIR_RE.match(str(name or "").strip().upper())
        if match is None:
            raise ValueError(f"instrument must look like 'EUR_USD', got {name!r}")
        return cls(base=match.group(1), quote=match.group(2))

    @property
    def name(self) -> str:
        return f"{self.base}_{self.quote}"

    @property
    def is_jpy_quoted(self) -> bool:
        return self.quote == "JPY"

    @property
    def pip_size(self) -> float:
        """Price movement of one pip (0.01 for JPY-quoted pairs)."""
        return JPY_PIP_SIZE if self.is_jpy_quoted else DEFAULT_PIP_SIZE

    @property
    def price_decimals(self) -> int:
        """Decimal places the broker quotes this pair with."""
        return 3 if self.is_jpy_quoted else 5

    def round_price(self, price: float) -> float:
        return round(price, self.price_decimals)

    def format_price(self, price: float) -> str:
        """Render *price* with the broker's precision, e.g. ``"1.08500"``."""
        return f"{price:.{self.price_decimals}f}"

    def __str__(self) -> str:
        return self.name


def normalize_instrument(name: str) -> str:
    """Return the canonical ``BASE_QUOTE`` form of *name*."""
    return Instrument.parse(name).name


def price_decimals_for(name: str | None) -> int:
    """Price precision for *name*, tolerating unknown or missing identifiers."""
    try:
        return Instrument.parse(name).price_decimals
    except ValueError:
        return 5
