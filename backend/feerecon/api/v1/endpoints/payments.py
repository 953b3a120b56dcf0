# ============================================================
# feerecon/api/v1/endpoints/payments.py
#
# Balances and payment submission.
#
#   GET  /payments/balance/{id}         → sequenced refresh
#   GET  /payments/balance/{id}/latest  → last APPLIED refresh
#   POST /payments/process              → record, then re-aggregate
#
# X-View-Id header: the UI panel the refresh belongs to. Refreshes
# for the same view supersede each other; without the header the
# student id is the view.
# ============================================================

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from feerecon.core.dependencies import get_balance_service
from feerecon.schemas.common import APIResponse
from feerecon.schemas.payments import (
    BalanceSummary, ProcessPaymentRequest, ProcessPaymentResponse, SequencedBalance,
)
from feerecon.services.balance_service import BalanceService
from feerecon.services.payment_service import process_payment

router = APIRouter(prefix="/payments", tags=["Payments"])


# ═══════════════════════════════════════════════════════════
# BALANCES
# ═══════════════════════════════════════════════════════════

@router.get("/balance/{student_id}", response_model=APIResponse[SequencedBalance])
async def get_balance(
    student_id: str,
    term: Optional[str] = Query(default=None),
    year: Optional[str] = Query(default=None),
    view_id: Optional[str] = Header(default=None, alias="X-View-Id"),
    balances: BalanceService = Depends(get_balance_service),
):
    """
    Required / paid / remaining for a student.

    term + year → that term only.
    neither     → current fees plus last term's unpaid balance.

    applied=false in the response means a newer refresh for the same
    view was issued while this one ran; the UI should ignore it.
    """
    result = await balances.refresh(student_id, term, year, view=view_id)
    message = "OK" if result.applied else "Superseded by a newer request"
    return APIResponse(data=result, message=message)


@router.get("/balance/{student_id}/latest", response_model=APIResponse[BalanceSummary])
async def get_latest_balance(
    student_id: str,
    view_id: Optional[str] = Header(default=None, alias="X-View-Id"),
    balances: BalanceService = Depends(get_balance_service),
):
    summary = balances.latest(student_id, view=view_id)
    if summary is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No balance computed for this student yet",
        )
    return APIResponse(data=summary)


# ═══════════════════════════════════════════════════════════
# PAYMENT SUBMISSION
# ═══════════════════════════════════════════════════════════

@router.post("/process", response_model=APIResponse[ProcessPaymentResponse])
async def submit_payment(
    body: ProcessPaymentRequest,
    view_id: Optional[str] = Header(default=None, alias="X-View-Id"),
    balances: BalanceService = Depends(get_balance_service),
):
    result = await process_payment(body, balances, view=view_id)
    message = "Payment already recorded" if result.replayed else "Payment processed successfully"
    return APIResponse(data=result, message=message)
