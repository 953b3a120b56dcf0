# feerecon/services/payment_aggregator.py
#
# Turns raw financial records into "how much has been paid for
# each billing type". This is the ONE place paid money is
# counted; every screen, reminder and export goes through here.

from typing import Any, Iterable, Optional, Union
import logging

from pydantic import ValidationError

from feerecon.schemas.payments import (
    AggregatedPayments, PaymentRecord, RecordStatus, COUNTABLE_RECORD_TYPES,
)
from feerecon.utils.billing_types import normalize_billing_type
from feerecon.utils.money import ZERO

logger = logging.getLogger(__name__)


def _as_record(raw: Union[PaymentRecord, dict, Any]) -> Optional[PaymentRecord]:
    if isinstance(raw, PaymentRecord):
        return raw
    if not isinstance(raw, dict):
        return None
    try:
        return PaymentRecord.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Skipping malformed financial record: {e}")
        return None


def _in_scope(record: PaymentRecord, term: Optional[str], year: Optional[str]) -> bool:
    # Records with no term/year stamped on them count everywhere.
    # Older rows were written without them.
    if term and record.term and record.term.strip().lower() != term.strip().lower():
        return False
    if year and record.year and record.year.strip() != str(year).strip():
        return False
    return True


def aggregate_payments(
    records: Optional[Iterable[Union[PaymentRecord, dict]]],
    term: Optional[str] = None,
    year: Optional[str] = None,
) -> AggregatedPayments:
    """
    Sum paid payment/sponsorship records per normalized billing type.

    Pending and overdue records never count. total_paid is the sum
    of the groups; never a number read from somewhere else.
    """
    paid_by_type: dict = {}
    count = 0

    for raw in records or []:
        record = _as_record(raw)
        if record is None:
            continue
        if record.status != RecordStatus.paid.value:
            continue
        if record.record_type not in COUNTABLE_RECORD_TYPES:
            continue
        if not _in_scope(record, term, year):
            continue

        key = normalize_billing_type(record.billing_type)
        paid_by_type[key] = paid_by_type.get(key, ZERO) + record.amount
        count += 1

    total = sum(paid_by_type.values(), ZERO)
    return AggregatedPayments(paid_by_billing_type=paid_by_type, total_paid=total, record_count=count)
