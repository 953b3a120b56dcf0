import asyncio
from datetime import date
from decimal import Decimal

import pytest

from feerecon.services.balance_service import BalanceService
from feerecon.services.fee_structure_service import FeeStructureResolver
from feerecon.utils.sequencing import LatestResultBoard

MID_TERM_2 = date(2025, 6, 15)


def _service(fake_store, today=MID_TERM_2, board=None):
    store = fake_store.client()
    return BalanceService(store, FeeStructureResolver(store), board=board, today=lambda: today)


@pytest.fixture
def two_terms(s1_fees):
    """Day student admitted in Term 1 2025; Term 1 short by the lunch fee."""
    s1_fees.add_student("1", class_name="S.1", residence="Day", created_at="2025-02-10T08:00:00Z")
    s1_fees.add_fee("S.1", "Tuition", 900000, term="Term 2")
    s1_fees.add_fee("S.1", "Lunch", 60000, term="Term 2")
    s1_fees.add_record("1", "Tuition", 800000, term="Term 1")
    s1_fees.add_record("1", "Tuition Fee", 400000, term="Term 2")
    s1_fees.add_record("1", "Lunch", 60000, status="pending", term="Term 2")
    return s1_fees


@pytest.mark.asyncio
async def test_scoped_balance_uses_that_term_only(two_terms):
    summary = await _service(two_terms).compute("1", "Term 2", "2025")

    assert summary.scoped is True
    assert summary.previous_balance == 0
    assert summary.total_fees_required == Decimal("960000")
    assert summary.total_paid == Decimal("400000")
    assert summary.balance == Decimal("560000")
    assert [l.billing_type for l in summary.payment_breakdown] == ["Tuition", "Lunch"]


@pytest.mark.asyncio
async def test_day_student_is_not_billed_for_boarding(two_terms):
    summary = await _service(two_terms).compute("1", "Term 1", "2025")

    assert summary.total_fees_required == Decimal("850000")
    assert summary.balance == Decimal("50000")


@pytest.mark.asyncio
async def test_store_totals_are_ignored(two_terms):
    # The fake store reports totalPaid=999999999 in every summary
    summary = await _service(two_terms).compute("1", "Term 1", "2025")
    assert summary.total_paid == Decimal("800000")


@pytest.mark.asyncio
async def test_unscoped_balance_carries_previous_term(two_terms):
    service = _service(two_terms)

    assert await service.previous_term_balance(await service.load_student("1")) == Decimal("50000")

    summary = await service.compute("1")
    assert summary.scoped is False
    assert summary.previous_balance == Decimal("50000")
    # Every term's fees, not just the latest copy of each name
    assert summary.current_term_fees == Decimal("1810000")
    carry = summary.payment_breakdown[-1]
    assert carry.billing_type == "Previous Fee Balance"
    assert carry.remaining == Decimal("50000")


@pytest.mark.asyncio
async def test_no_carry_over_from_before_admission(two_terms):
    two_terms.add_student("2", class_name="S.1", residence="Day", created_at="2025-06-01T08:00:00Z")
    service = _service(two_terms)

    assert await service.previous_term_balance(await service.load_student("2")) == 0
    summary = await service.compute("2")
    assert summary.previous_balance == 0


@pytest.mark.asyncio
async def test_term_before_admission_is_zero_even_if_store_has_fees(two_terms):
    two_terms.add_student("2", class_name="S.1", residence="Day", created_at="2025-06-01T08:00:00Z")
    summary = await _service(two_terms).compute("2", "Term 1", "2025")

    assert summary.total_fees_required == 0
    assert summary.payment_breakdown == []


@pytest.mark.asyncio
async def test_missing_student_gives_zero_summary(fake_store):
    summary = await _service(fake_store).compute("nope", "Term 1", "2025")

    assert summary.student_id == "nope"
    assert summary.total_fees_required == 0
    assert summary.balance == 0


@pytest.mark.asyncio
async def test_store_down_gives_zero_summary(two_terms):
    two_terms.down = True
    summary = await _service(two_terms).compute("1")
    assert summary.balance == 0
    assert summary.payment_breakdown == []


@pytest.mark.asyncio
async def test_refresh_publishes_to_board(two_terms):
    service = _service(two_terms)

    result = await service.refresh("1", "Term 1", "2025")

    assert result.applied is True
    assert service.latest("1") == result.summary
    assert service.latest("1", view="other-panel") is None


@pytest.mark.asyncio
async def test_slow_stale_refresh_is_discarded(two_terms):
    gate = asyncio.Event()
    two_terms.blockers[("/fee-structures", "Term 1")] = gate
    service = _service(two_terms, board=LatestResultBoard())

    slow = asyncio.create_task(service.refresh("1", "Term 1", "2025", view="panel"))
    for _ in range(200):
        if any(p == {"term": "Term 1", "year": "2025"} for _, _, p in two_terms.calls):
            break
        await asyncio.sleep(0.01)

    fast = await service.refresh("1", "Term 3", "2025", view="panel")
    gate.set()
    stale = await slow

    assert fast.applied is True
    assert stale.applied is False
    assert stale.sequence < fast.sequence
    assert service.latest("1", view="panel").term == "Term 3"
