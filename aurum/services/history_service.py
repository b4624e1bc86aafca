"""Trade history workflow — fetch broker data, then reconstruct."""

import logging
from datetime import timedelta
from typing import Optional

import httpx

from aurum.broker.oanda_client import OandaClient
from aurum.config import Config
from aurum.errors import InputUnavailable
from aurum.history.models import ReconstructionResult
from aurum.history.reconstructor import build_history
from aurum.timeutils import utc_now

logger = logging.getLogger("aurum")


class HistoryService:
    """Builds the trade ledger of a broker account.

    Trade summaries are preferred; the transaction log is only fetched
    when summaries are unavailable or empty.

    Args:
        config: Application configuration.
        broker: An ``OandaClient`` (or compatible duck-type / mock).
    """

    def __init__(self, config: Config, broker: OandaClient) -> None:
        self._config = config
        self._broker = broker

    async def load(
        self,
        broker_account_id: Optional[str] = None,
        from_time: Optional[str] = None,
        to_time: Optional[str] = None,
    ) -> ReconstructionResult:
        """Return the reconstructed history for *broker_account_id*.

        Raises:
            InputUnavailable: If open trades cannot be fetched, or neither
                summaries nor transactions are available.
        """
        try:
            open_trades = await self._broker.list_open_trades(broker_account_id)
        except httpx.HTTPError as exc:
            raise InputUnavailable(f"Open trades unavailable: {exc}") from exc

        try:
            closed = await self._broker.list_trades(
                "CLOSED", account_id=broker_account_id,
            )
        except httpx.HTTPError as exc:
            logger.warning("Closed trade summaries unavailable (%s)", exc)
            closed = None

        result = build_history(open_trades, closed=closed)
        if result.trades:
            return result

        if from_time is None:
            since = utc_now() - timedelta(days=self._config.history_lookback_days)
            from_time = since.isoformat()
        try:
            transactions = await self._broker.fetch_transactions(
                broker_account_id, from_time=from_time, to_time=to_time,
            )
        except httpx.HTTPError as exc:
            if closed is None:
                raise InputUnavailable(f"Transactions unavailable: {exc}") from exc
            logger.warning("Transactions unavailable (%s)", exc)
            return result

        return build_history(open_trades, closed=closed, transactions=transactions)
