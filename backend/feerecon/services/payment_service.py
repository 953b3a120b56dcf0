# ============================================================
# feerecon/services/payment_service.py
#
# Recording a payment, start to finish:
#
#   1. Student must exist in the store            → else 404
#   2. Same reference seen recently?              → replay it
#      Same reference still in flight?            → 409
#   3. POST /payments/process to the store        → else 502
#   4. Drop the class's cached fee structure
#   5. Re-fetch and re-aggregate the balance      (mandatory:
#      the number shown after a payment must come from the store,
#      never from anything cached before it)
#
# Unlike the balance reads, this path DOES raise. A payment that
# may or may not have been recorded is not a "degrade to zero"
# situation.
# ============================================================

from typing import Optional
import logging

from fastapi import HTTPException, status

from feerecon.core.config import settings
from feerecon.core.store import StoreError
from feerecon.schemas.payments import ProcessPaymentRequest, ProcessPaymentResponse
from feerecon.services.admission_service import current_term
from feerecon.services.balance_service import BalanceService
from feerecon.utils.billing_types import GENERAL_FEE
from feerecon.utils.idempotency import (
    get_payment_replay, payment_replay_key, release_payment, remember_payment,
    reserve_payment,
)
from feerecon.utils.receipt import generate_receipt_number

logger = logging.getLogger(__name__)


def _describe(billing_type: str, method: str, reference: Optional[str]) -> str:
    ref = f" (Ref: {reference})" if reference else ""
    return f"Payment for {billing_type} - {method}{ref}"


async def process_payment(
    data: ProcessPaymentRequest,
    balances: BalanceService,
    view: Optional[str] = None,
    idempotency_db_path: Optional[str] = None,
) -> ProcessPaymentResponse:
    student = await balances.load_student(data.student_id)
    if student is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Student not found",
        )

    replay_key = payment_replay_key(student.id, data.payment_reference)
    if replay_key:
        replay = get_payment_replay(
            replay_key,
            ttl_seconds=settings.IDEMPOTENCY_TTL_SECONDS,
            db_path=idempotency_db_path,
        )
        if replay:
            logger.info(f"Replayed payment {data.payment_reference} for student {student.id}")
            refreshed = await balances.refresh(student.id, view=view)
            return ProcessPaymentResponse(
                receipt_number=replay["receipt_number"],
                record=replay.get("record") or {},
                balance=refreshed.summary,
                replayed=True,
            )
        if not reserve_payment(
            replay_key,
            ttl_seconds=settings.IDEMPOTENCY_TTL_SECONDS,
            db_path=idempotency_db_path,
        ):
            logger.warning(f"Payment {data.payment_reference} for student {student.id} is already in flight")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="This payment is already being recorded",
            )

    billing_type = (data.billing_type or "").strip() or GENERAL_FEE
    method = (data.payment_method or "").strip() or "cash"
    receipt_number = generate_receipt_number()
    term, year = current_term()

    payload = {
        "studentId":        student.id,
        "amount":           float(data.amount),
        "billingType":      billing_type,
        "paymentMethod":    method,
        "paymentReference": data.payment_reference or "",
        "description":      data.description or _describe(billing_type, method, data.payment_reference),
        "receiptNumber":    receipt_number,
        "term":             term,
        "year":             year,
    }

    try:
        result = await balances.store.submit_payment(payload)
    except StoreError as e:
        if replay_key:
            release_payment(replay_key, db_path=idempotency_db_path)
        logger.error(f"Payment submission failed for student {student.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not record payment. Try again.",
        )

    record = result.get("record") or result.get("payment") or {}

    # Fee amounts may have changed since they were cached; the
    # balance below must not be built from a stale structure.
    balances.resolver.cache.invalidate(student.class_name)

    if replay_key:
        remember_payment(
            replay_key,
            payload={"receipt_number": receipt_number, "record": record},
            db_path=idempotency_db_path,
        )

    refreshed = await balances.refresh(student.id, view=view)
    logger.info(
        f"Recorded {settings.CURRENCY} {data.amount:,} {billing_type} for student {student.id} "
        f"({receipt_number}); balance now {refreshed.summary.balance:,}"
    )

    return ProcessPaymentResponse(
        receipt_number=receipt_number,
        record=record,
        balance=refreshed.summary,
    )
