"""Credit ledger: confirms a user can pay the precomputed cost of a job."""

from __future__ import annotations

from functools import lru_cache

import structlog

from narrated_video.config import settings

logger = structlog.get_logger()


class InsufficientCreditsError(Exception):
    def __init__(self, user_id: str, balance: int, cost: int):
        self.user_id = user_id
        self.balance = balance
        self.cost = cost
        super().__init__(f"User {user_id} has {balance} credits, job needs {cost}")


class CreditLedger:
    """In-memory balances. Replace with database-backed implementation.

    New users start with ``starting_balance`` credits.
    """

    def __init__(self, starting_balance: int = 0):
        self.starting_balance = starting_balance
        self._balances: dict[str, int] = {}

    async def get_balance(self, user_id: str) -> int:
        return self._balances.get(user_id, self.starting_balance)

    async def charge(self, user_id: str, cost: int) -> int:
        """Deduct *cost*; raises ``InsufficientCreditsError`` without changing the balance."""
        if cost < 0:
            raise ValueError(f"cost must be non-negative, got {cost}")
        balance = await self.get_balance(user_id)
        if balance < cost:
            raise InsufficientCreditsError(user_id, balance, cost)
        self._balances[user_id] = balance - cost
        logger.info("credits.charged", user_id=user_id, cost=cost, balance=balance - cost)
        return balance - cost

    async def refund(self, user_id: str, amount: int) -> int:
        """Give back credits charged for work that failed."""
        balance = await self.get_balance(user_id) + amount
        self._balances[user_id] = balance
        logger.info("credits.refunded", user_id=user_id, amount=amount, balance=balance)
        return balance


@lru_cache(maxsize=1)
def get_credit_ledger() -> CreditLedger:
    return CreditLedger(starting_balance=settings.starting_credits)
