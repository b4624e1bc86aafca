"""Trading account workflow — open from a plan, then approve and link."""

import logging
from typing import Optional

import httpx

from aurum.broker.oanda_client import OandaClient, normalize_account_id
from aurum.errors import AccountNotFound, InputUnavailable
from aurum.repos.account_repo import AccountRepo, TradingAccount

logger = logging.getLogger("aurum")


class AccountService:
    """Creates trading accounts and binds them to broker accounts.

    Args:
        broker: An ``OandaClient`` (or compatible duck-type / mock).
        account_repo: Store for trading accounts.
    """

    def __init__(self, broker: OandaClient, account_repo: AccountRepo) -> None:
        self._broker = broker
        self._account_repo = account_repo

    def open_from_plan(
        self,
        cost: str | int,
        user_id: Optional[int] = None,
    ) -> TradingAccount:
        """Create a pending account for the plan sold at *cost*.

        Raises:
            KeyError: No plan is sold at *cost*.
        """
        account_id = self._account_repo.insert_from_plan(cost, user_id=user_id)
        account = self._account_repo.get_account(account_id)
        logger.info(
            "Opened %s account %d (size %s) for user %s",
            account.plan_type, account.id, account.account_size, user_id,
        )
        return account

    async def activate(self, account_id: int, broker_account_id: str) -> TradingAccount:
        """Approve *account_id* once *broker_account_id* is confirmed to exist.

        Raises:
            AccountNotFound: Unknown trading account.
            InputUnavailable: The broker account could not be looked up.
            ValueError: *broker_account_id* is blank.
        """
        if self._account_repo.get_account(account_id) is None:
            raise AccountNotFound(f"Trading account {account_id} not found")

        broker_account_id = normalize_account_id(broker_account_id)
        if not broker_account_id:
            raise ValueError("broker_account_id is required")
        try:
            summary = await self._broker.get_account_summary(broker_account_id)
        except httpx.HTTPError as exc:
            raise InputUnavailable(
                f"Broker account {broker_account_id} could not be verified: {exc}"
            ) from exc
        if summary.currency != "USD":
            logger.warning(
                "Broker account %s is denominated in %s; sizing assumes USD",
                broker_account_id, summary.currency,
            )

        self._account_repo.activate(account_id, broker_account_id)
        logger.info(
            "Account %d activated on broker account %s (balance %s)",
            account_id, broker_account_id, summary.balance,
        )
        return self._account_repo.get_account(account_id)
