# feerecon/schemas/payments.py

from pydantic import AliasChoices, Field, field_validator
from typing import Optional, List, Dict, Any
from decimal import Decimal
from enum import Enum

from feerecon.schemas.common import CamelModel
from feerecon.utils.billing_types import GENERAL_FEE, BILLING_TYPE_TABLE_VERSION
from feerecon.utils.money import ZERO, non_negative


class RecordStatus(str, Enum):
    paid    = "paid"
    pending = "pending"
    overdue = "overdue"


class RecordType(str, Enum):
    payment     = "payment"
    sponsorship = "sponsorship"


# Only these record types ever count as money received.
COUNTABLE_RECORD_TYPES = {RecordType.payment.value, RecordType.sponsorship.value}


# ── Financial records (read model from the store) ────────────
class PaymentRecord(CamelModel):
    student_id: Optional[str] = None
    record_type: str = Field(
        default=RecordType.payment.value,
        validation_alias=AliasChoices("type", "recordType", "record_type"),
        serialization_alias="type",
    )
    billing_type: str = GENERAL_FEE
    amount: Decimal = ZERO
    status: str = RecordStatus.pending.value
    term: Optional[str] = None
    year: Optional[str] = None
    date: Optional[str] = None

    @field_validator("student_id", "year", "date", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Optional[str]:
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("record_type", mode="before")
    @classmethod
    def _record_type(cls, v: Any) -> str:
        return str(v or RecordType.payment.value).strip().lower()

    @field_validator("billing_type", mode="before")
    @classmethod
    def _billing_type(cls, v: Any) -> str:
        name = str(v or "").strip()
        return name or GENERAL_FEE

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, v: Any) -> Decimal:
        return non_negative(v)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v: Any) -> str:
        return str(v or "").strip().lower()


class AggregatedPayments(CamelModel):
    """What the aggregator returns: paid amounts per normalized billing type."""
    paid_by_billing_type: Dict[str, Decimal] = {}
    total_paid: Decimal = ZERO
    record_count: int = 0


# ── Balance summary (derived, never persisted) ───────────────
class BreakdownLine(CamelModel):
    billing_type: str
    category: str               # normalized billing-type key
    required: Decimal = ZERO
    paid: Decimal = ZERO
    remaining: Decimal = ZERO


class BalanceSummary(CamelModel):
    """
    {required, paid, remaining} for one student and one scope.

    balance and every remaining are clamped at zero. total_paid is
    always the sum of payment_breakdown[].paid; recomputed, never
    copied from a total the store hands us.
    """
    student_id: Optional[str] = None
    term: Optional[str] = None
    year: Optional[str] = None
    scoped: bool = False
    total_fees_required: Decimal = ZERO
    current_term_fees: Decimal = ZERO
    previous_balance: Decimal = ZERO
    total_paid: Decimal = ZERO
    balance: Decimal = ZERO
    payment_breakdown: List[BreakdownLine] = []
    billing_table_version: str = BILLING_TYPE_TABLE_VERSION


class SequencedBalance(CamelModel):
    """
    A balance refresh tagged with its sequence number.
    applied=False means a newer refresh was issued while this one
    was in flight; the UI must not show it.
    """
    sequence: int
    applied: bool
    summary: BalanceSummary


# ── Payment submission ───────────────────────────────────────
class ProcessPaymentRequest(CamelModel):
    student_id: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    billing_type: Optional[str] = None
    payment_method: str = "cash"
    payment_reference: Optional[str] = None
    description: Optional[str] = None

    @field_validator("student_id", mode="before")
    @classmethod
    def _student_id(cls, v: Any) -> str:
        return str(v or "").strip()


class ProcessPaymentResponse(CamelModel):
    receipt_number: str
    record: Dict[str, Any] = {}
    balance: BalanceSummary
    replayed: bool = False
