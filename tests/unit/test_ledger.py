"""Unit tests for the credit ledger"""

import asyncio

import pytest

from core.errors import DuplicateTransaction
from core.models.records import TransType
from core.pricing import credits_to_units


# ============================================================
# Balance
# ============================================================

@pytest.mark.asyncio
async def test_new_user_has_zero_balance(ledger):
    assert await ledger.get_balance("alice") == 0
    assert await ledger.get_balance_credits("alice") == 0


@pytest.mark.asyncio
async def test_balance_is_sum_of_transactions(ledger):
    await ledger.grant("alice", credits_to_units(100), "welcome")
    await ledger.charge("alice", credits_to_units(50), order_no="ord-1")
    await ledger.deduct("alice", credits_to_units(12.5), idempotency_key="job:1")

    assert await ledger.get_balance("alice") == 1375
    assert await ledger.get_balance_credits("alice") == pytest.approx(137.5)


@pytest.mark.asyncio
async def test_balances_are_per_user(ledger):
    await ledger.grant("alice", 100, "welcome")
    await ledger.grant("bob", 40, "welcome")

    assert await ledger.get_balance("alice") == 100
    assert await ledger.get_balance("bob") == 40


@pytest.mark.asyncio
async def test_display_balance_is_clamped_at_zero(ledger):
    await ledger.grant("alice", 10, "welcome")
    await ledger.deduct("alice", 25, idempotency_key="job:1")

    assert await ledger.get_raw_balance("alice") == -15
    assert await ledger.get_balance("alice") == 0


# ============================================================
# Posting
# ============================================================

@pytest.mark.asyncio
async def test_deduct_posts_negative_amount(ledger):
    transaction = await ledger.deduct("alice", 30, idempotency_key="job:abc", reason="T2I:run-1")

    assert transaction.trans_type == TransType.DEDUCT
    assert transaction.amount == -30
    assert transaction.trans_no == "job:abc"
    assert transaction.order_no == "T2I:run-1"


@pytest.mark.asyncio
async def test_duplicate_key_is_rejected(ledger):
    await ledger.deduct("alice", 30, idempotency_key="job:abc")

    with pytest.raises(DuplicateTransaction):
        await ledger.deduct("alice", 30, idempotency_key="job:abc")

    assert await ledger.get_raw_balance("alice") == -30


@pytest.mark.asyncio
async def test_concurrent_posts_with_same_key_land_once(ledger):
    results = await asyncio.gather(
        *[ledger.deduct("alice", 30, idempotency_key="job:same") for _ in range(10)],
        return_exceptions=True,
    )

    landed = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, DuplicateTransaction)]
    assert len(landed) == 1
    assert len(rejected) == 9
    assert await ledger.get_raw_balance("alice") == -30


@pytest.mark.asyncio
async def test_order_number_is_idempotency_key_for_charges(ledger):
    await ledger.charge("alice", 500, order_no="ord-9")

    with pytest.raises(DuplicateTransaction):
        await ledger.charge("alice", 500, order_no="ord-9")


@pytest.mark.asyncio
async def test_amount_must_be_integer_units(ledger):
    with pytest.raises(TypeError):
        await ledger.post_transaction("alice", TransType.GRANT, 1.5, "grant:x")


@pytest.mark.asyncio
async def test_amount_sign_must_match_type(ledger):
    with pytest.raises(ValueError):
        await ledger.post_transaction("alice", TransType.DEDUCT, 10, "job:x")
    with pytest.raises(ValueError):
        await ledger.post_transaction("alice", TransType.GRANT, -10, "grant:x")


@pytest.mark.asyncio
async def test_get_transaction(ledger):
    await ledger.grant("alice", 100, "welcome", idempotency_key="grant:welcome")

    row = await ledger.get_transaction("grant:welcome")
    assert row.user_id == "alice"
    assert row.amount == 100
    assert await ledger.get_transaction("missing") is None


# ============================================================
# Bonus and History
# ============================================================

@pytest.mark.asyncio
async def test_new_user_bonus_granted_once(ledger):
    first = await ledger.grant_new_user_bonus("alice")
    second = await ledger.grant_new_user_bonus("alice")

    assert first.trans_type == TransType.BONUS
    assert first.amount == 3060
    assert second is None
    assert await ledger.get_balance_credits("alice") == 306


@pytest.mark.asyncio
async def test_history_newest_first_and_limited(ledger):
    for i in range(5):
        await ledger.grant("alice", 10 + i, f"grant {i}", idempotency_key=f"grant:{i}")
    await ledger.grant("bob", 99, "other user")

    rows = await ledger.history("alice", limit=3)

    assert [r.trans_no for r in rows] == ["grant:4", "grant:3", "grant:2"]
