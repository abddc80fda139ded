"""
Credit ledger - append-only transaction log

A user's balance is the sum of their transactions. Rows are never updated or
deleted; corrections are new rows. Every row carries a unique idempotency key
(`trans_no`), enforced by the store's unique index rather than a lookup before
insert, so two concurrent posts with the same key cannot both land.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from core.errors import DuplicateKeyError, DuplicateTransaction
from core.models.records import CreditTransaction, TransType
from core.pricing import NEW_USER_BONUS, credits_to_units, units_to_credits
from core.store.base import WorkflowStore

logger = logging.getLogger(__name__)


# Types that may only move the balance in one direction
_NEGATIVE_TYPES = {TransType.DEDUCT, TransType.EXPIRE}
_POSITIVE_TYPES = {TransType.CHARGE, TransType.GRANT, TransType.BONUS, TransType.REFUND}


class CreditLedger:
    """Balance queries and idempotent posting over a WorkflowStore"""

    def __init__(self, store: WorkflowStore):
        self.store = store

    async def get_raw_balance(self, user_id: str) -> int:
        """Unclamped signed sum in micro-units"""
        return await self.store.sum_transactions(user_id)

    async def get_balance(self, user_id: str) -> int:
        """Balance in micro-units, floored at zero for display"""
        return max(0, await self.get_raw_balance(user_id))

    async def get_balance_credits(self, user_id: str) -> float:
        return units_to_credits(await self.get_balance(user_id))

    async def post_transaction(
        self,
        user_id: str,
        trans_type: TransType,
        amount: int,
        idempotency_key: str,
        order_no: Optional[str] = None,
        expired_at: Optional[datetime] = None,
    ) -> CreditTransaction:
        """
        Append one signed transaction.

        Args:
            user_id: Owning user
            trans_type: Transaction type
            amount: Signed micro-units (deductions negative)
            idempotency_key: Unique transaction number
            order_no: Linked order or reason
            expired_at: Optional expiry for granted credits

        Raises:
            DuplicateTransaction: the key is already in the ledger
        """
        if not isinstance(amount, int):
            raise TypeError(f"amount must be integer micro-units, got {amount!r}")
        if trans_type in _NEGATIVE_TYPES and amount > 0:
            raise ValueError(f"{trans_type.value} amount must not be positive: {amount}")
        if trans_type in _POSITIVE_TYPES and amount < 0:
            raise ValueError(f"{trans_type.value} amount must not be negative: {amount}")

        transaction = CreditTransaction(
            trans_no=idempotency_key,
            user_id=user_id,
            trans_type=trans_type,
            amount=amount,
            order_no=order_no,
            expired_at=expired_at,
        )
        try:
            stored = await self.store.insert_transaction(transaction)
        except DuplicateKeyError:
            raise DuplicateTransaction(idempotency_key) from None

        logger.debug(
            "[Ledger] %s %s %+d units (%s)",
            user_id, trans_type.value, amount, idempotency_key,
        )
        return stored

    async def deduct(
        self,
        user_id: str,
        units: int,
        idempotency_key: str,
        reason: Optional[str] = None,
    ) -> CreditTransaction:
        """Post a usage deduction; `units` is the positive cost"""
        return await self.post_transaction(
            user_id=user_id,
            trans_type=TransType.DEDUCT,
            amount=-abs(units),
            idempotency_key=idempotency_key,
            order_no=reason,
        )

    async def grant(
        self,
        user_id: str,
        units: int,
        reason: str,
        idempotency_key: Optional[str] = None,
        expired_at: Optional[datetime] = None,
    ) -> CreditTransaction:
        """Post free credits"""
        return await self.post_transaction(
            user_id=user_id,
            trans_type=TransType.GRANT,
            amount=abs(units),
            idempotency_key=idempotency_key or f"grant:{uuid.uuid4()}",
            order_no=reason,
            expired_at=expired_at,
        )

    async def charge(
        self,
        user_id: str,
        units: int,
        order_no: str,
        expired_at: Optional[datetime] = None,
    ) -> CreditTransaction:
        """Post purchased credits; the order number is the idempotency key"""
        return await self.post_transaction(
            user_id=user_id,
            trans_type=TransType.CHARGE,
            amount=abs(units),
            idempotency_key=f"order:{order_no}",
            order_no=order_no,
            expired_at=expired_at,
        )

    async def grant_new_user_bonus(self, user_id: str) -> Optional[CreditTransaction]:
        """Post the one-time sign-up bonus; returns None if it was already granted"""
        try:
            return await self.post_transaction(
                user_id=user_id,
                trans_type=TransType.BONUS,
                amount=credits_to_units(NEW_USER_BONUS),
                idempotency_key=f"bonus:new-user:{user_id}",
                order_no="new_user_bonus",
            )
        except DuplicateTransaction:
            logger.info("[Ledger] New user bonus already granted to %s", user_id)
            return None

    async def get_transaction(self, trans_no: str) -> Optional[CreditTransaction]:
        return await self.store.get_transaction(trans_no)

    async def history(self, user_id: str, limit: int = 50) -> List[CreditTransaction]:
        return await self.store.list_transactions(user_id, limit=limit)
