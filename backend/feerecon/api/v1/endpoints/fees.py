# feerecon/api/v1/endpoints/fees.py
#
# Fee structures as a student would be billed for them.
# Read-only against the store; the only writes are to our own
# advisory cache (clearing it after someone edits fees).

from typing import Optional
from fastapi import APIRouter, Depends, Query

from feerecon.core.dependencies import (
    get_balance_service, get_fee_cache, get_resolver,
)
from feerecon.schemas.common import APIResponse
from feerecon.schemas.fees import FeeStructureView
from feerecon.services.balance_service import BalanceService
from feerecon.services.fee_structure_service import FeeStructureCache, FeeStructureResolver
from feerecon.services.residence_service import filter_by_residence

router = APIRouter(tags=["Fee Structures"])


# ═══════════════════════════════════════════════════════════
# FEE STRUCTURES
# ═══════════════════════════════════════════════════════════

@router.get("/structure/{class_name}", response_model=APIResponse[FeeStructureView])
async def get_fee_structure(
    class_name: str,
    term: Optional[str] = Query(default=None),
    year: Optional[str] = Query(default=None),
    residence_type: Optional[str] = Query(default=None, alias="residenceType"),
    student_id: Optional[str] = Query(default=None, alias="studentId"),
    resolver: FeeStructureResolver = Depends(get_resolver),
    balances: BalanceService = Depends(get_balance_service),
):
    """
    Fee items for a class, filtered for Day/Boarding.

    With studentId, the student's own residence type and admission
    term apply (terms before admission come back empty). An explicit
    residenceType query param wins over the student's record.
    Served from the cache when the same class/term was just fetched.
    """
    student = await balances.load_student(student_id) if student_id else None
    residence = residence_type or (student.residence_type.value if student and student.residence_type else None)

    resolved = await resolver.resolve(class_name, term, year, student=student, use_cache=True)
    filtered = filter_by_residence(resolved.items, residence)

    view = FeeStructureView(
        class_name=class_name,
        term=term,
        year=year,
        residence_type=residence or "Day",
        items=filtered.items,
        total=filtered.total,
    )
    message = "OK" if filtered.items else f"No fee structure found for {class_name}"
    return APIResponse(data=view, message=message)


# ═══════════════════════════════════════════════════════════
# CACHE: call after editing a fee structure
# ═══════════════════════════════════════════════════════════

@router.delete("/cache", response_model=APIResponse[dict])
async def clear_fee_cache(cache: FeeStructureCache = Depends(get_fee_cache)):
    cleared = cache.clear()
    return APIResponse(data={"cleared": cleared}, message=f"Cleared {cleared} cached fee structures")


@router.delete("/cache/{class_name}", response_model=APIResponse[dict])
async def invalidate_fee_cache(
    class_name: str,
    cache: FeeStructureCache = Depends(get_fee_cache),
):
    removed = cache.invalidate(class_name.strip())
    return APIResponse(
        data={"className": class_name, "invalidated": removed},
        message="Invalidated" if removed else "Nothing cached for this class",
    )
