# ============================================================
# feerecon/services/balance_service.py
#
# Required vs paid vs remaining: the numbers the bursar sees.
#
# compute_balance()  → pure arithmetic over fee items + paid map
# BalanceService     → fetches everything and calls it
#
# Two views, on purpose:
#   Scoped   (term AND year given) → that term's fees only,
#            no carry-over.
#   Unscoped (no term/year)        → current fees PLUS the unpaid
#            balance of the previous term (one term back only,
#            not a full arrears ledger).
#
# Invariants the tests pin down:
#   - remaining >= 0 and balance >= 0, always
#   - total_paid == sum(payment_breakdown[].paid), always
#   - zero fee items → a well-formed zero summary, never an error
# ============================================================

from collections import Counter
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Mapping, Optional, Any
import logging

from pydantic import ValidationError

from feerecon.core.store import StoreClient
from feerecon.schemas.fees import FeeItem
from feerecon.schemas.payments import BalanceSummary, BreakdownLine, SequencedBalance
from feerecon.schemas.students import Student
from feerecon.services.admission_service import (
    admission_term, current_term, is_before, previous_term,
)
from feerecon.services.fee_structure_service import FeeStructureResolver
from feerecon.services.payment_aggregator import aggregate_payments
from feerecon.services.residence_service import filter_by_residence
from feerecon.utils.billing_types import (
    GENERAL_FEE, PREVIOUS_BALANCE, normalize_billing_type,
)
from feerecon.utils.money import ZERO, clamp_remaining, non_negative, to_decimal
from feerecon.utils.sequencing import LatestResultBoard

logger = logging.getLogger(__name__)


def compute_balance(
    fee_items: Iterable[FeeItem],
    paid_by_billing_type: Optional[Mapping[str, Any]],
    previous_balance: Any = 0,
    student_id: Optional[str] = None,
    term: Optional[str] = None,
    year: Optional[str] = None,
) -> BalanceSummary:
    """
    Combine fee items and paid amounts into a BalanceSummary.

    Matching is by normalized billing type. When two fee items fold
    to the same key they share that key's paid amount in order:
    each takes up to what it requires and the last takes the rest, so
    one payment is never counted twice. Paid money that matches no
    fee item goes to a General Fee line instead of vanishing.

    previous_balance is ignored when term and year are both given.
    """
    items = list(fee_items or [])
    scoped = bool(term and year)
    carry_over = ZERO if scoped else non_negative(previous_balance)

    pools: dict[str, Decimal] = {}
    for raw_key, amount in (paid_by_billing_type or {}).items():
        key = normalize_billing_type(raw_key)
        pools[key] = pools.get(key, ZERO) + non_negative(amount)

    keys = [normalize_billing_type(item.fee_name) for item in items]
    left_for_key = Counter(keys)

    lines: list[BreakdownLine] = []
    for item, key in zip(items, keys):
        required = non_negative(item.amount)
        pool = pools.get(key, ZERO)
        left_for_key[key] -= 1
        paid = pool if left_for_key[key] == 0 else min(pool, required)
        pools[key] = pool - paid
        lines.append(BreakdownLine(
            billing_type=item.fee_name,
            category=key,
            required=required,
            paid=paid,
            remaining=clamp_remaining(required, paid),
        ))

    fee_keys = set(keys)
    unallocated = sum((v for k, v in pools.items() if k not in fee_keys and v > ZERO), ZERO)
    if unallocated > ZERO:
        general = next((line for line in reversed(lines) if line.category == "general"), None)
        if general is not None:
            general.paid += unallocated
            general.remaining = clamp_remaining(general.required, general.paid)
        else:
            lines.append(BreakdownLine(
                billing_type=GENERAL_FEE,
                category="general",
                required=ZERO,
                paid=unallocated,
                remaining=ZERO,
            ))

    current_term_fees = sum((line.required for line in lines), ZERO)
    if carry_over > ZERO:
        lines.append(BreakdownLine(
            billing_type=PREVIOUS_BALANCE,
            category="previous_balance",
            required=carry_over,
            paid=ZERO,
            remaining=carry_over,
        ))

    total_required = current_term_fees + carry_over
    total_paid = sum((line.paid for line in lines), ZERO)

    return BalanceSummary(
        student_id=student_id,
        term=term if scoped else None,
        year=str(year) if scoped else None,
        scoped=scoped,
        total_fees_required=total_required,
        current_term_fees=current_term_fees,
        previous_balance=carry_over,
        total_paid=total_paid,
        balance=clamp_remaining(total_required, total_paid),
        payment_breakdown=lines,
    )


class BalanceService:
    """
    The single entry point for "what does this student owe?".

    Everything is fetched fresh per call. The only shared state is
    the LatestResultBoard that refresh() publishes to.
    """

    def __init__(
        self,
        store: StoreClient,
        resolver: FeeStructureResolver,
        board: Optional[LatestResultBoard] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.store = store
        self.resolver = resolver
        self.board = board if board is not None else LatestResultBoard()
        self._today = today

    def _today_date(self) -> Optional[date]:
        return self._today() if self._today else None

    async def load_student(self, student_id: Optional[str]) -> Optional[Student]:
        sid = str(student_id or "").strip()
        if not sid:
            return None
        raw = await self.store.fetch_student(sid)
        if raw is None:
            return None
        try:
            return Student.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Student {sid} has an unreadable record: {e}")
            return None

    async def term_fees(self, student: Student, term: Optional[str], year: Optional[str]):
        """Gated, residence-filtered fee items for one student and scope."""
        resolved = await self.resolver.resolve(student.class_name, term, year, student=student)
        return filter_by_residence(resolved.items, student.residence_type)

    async def previous_term_balance(self, student: Student) -> Decimal:
        """
        Unpaid amount of the term before the current one.
        0 when that term predates the student's admission.
        """
        cur_term, cur_year = current_term(self._today_date())
        prev = previous_term(cur_term, cur_year)
        if prev is None:
            return ZERO
        prev_term, prev_year = prev
        if is_before(prev_term, prev_year, admission_term(student)):
            return ZERO

        fees = await self.term_fees(student, prev_term, prev_year)
        records = await self.store.fetch_financial_records(student.id, prev_term, prev_year)
        paid = aggregate_payments(records, prev_term, prev_year)
        balance = clamp_remaining(fees.total, to_decimal(paid.total_paid))
        logger.debug(
            f"Previous term balance for {student.id} ({prev_term} {prev_year}): "
            f"required={fees.total} paid={paid.total_paid} balance={balance}"
        )
        return balance

    async def compute(
        self,
        student_id: Optional[str],
        term: Optional[str] = None,
        year: Optional[str] = None,
    ) -> BalanceSummary:
        scoped = bool(term and year)
        if not scoped:
            term, year = None, None

        student = await self.load_student(student_id)
        if student is None:
            logger.warning(f"Student {student_id!r} not found, returning zero balance")
            return compute_balance([], {}, student_id=str(student_id or "") or None, term=term, year=year)

        fees = await self.term_fees(student, term, year)
        records = await self.store.fetch_financial_records(student.id, term, year)
        paid = aggregate_payments(records, term, year)

        carry_over = ZERO if scoped else await self.previous_term_balance(student)

        return compute_balance(
            fees.items,
            paid.paid_by_billing_type,
            carry_over,
            student_id=student.id,
            term=term,
            year=year,
        )

    async def refresh(
        self,
        student_id: str,
        term: Optional[str] = None,
        year: Optional[str] = None,
        view: Optional[str] = None,
    ) -> SequencedBalance:
        """compute(), tagged with a sequence number; published only if still newest."""
        key = view or str(student_id)
        seq = self.board.issue(key)
        summary = await self.compute(student_id, term, year)
        applied = self.board.publish(key, seq, summary)
        if not applied:
            logger.debug(f"Discarding stale balance #{seq} for view {key}")
        return SequencedBalance(sequence=seq, applied=applied, summary=summary)

    def latest(self, student_id: str, view: Optional[str] = None) -> Optional[BalanceSummary]:
        return self.board.current(view or str(student_id))
