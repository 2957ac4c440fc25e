"""
Credit ledger interface.
"""

from abc import ABC, abstractmethod
from decimal import Decimal


class ICreditLedger(ABC):
    """Atomic tenant credit mutation."""

    @abstractmethod
    async def debit(self, tenant_id: str, amount: Decimal) -> Decimal:
        """
        Debit amount from the tenant balance.

        Returns:
            The new balance

        Raises:
            InsufficientFundsError: If the balance is lower than amount
        """
        pass
