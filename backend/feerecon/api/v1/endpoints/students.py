# feerecon/api/v1/endpoints/students.py
#
# Which terms can a student be billed for? The UI uses this to
# default the term picker to the admission term and to hide years
# before the student existed.

from fastapi import APIRouter, Depends, HTTPException

from feerecon.core.dependencies import get_balance_service
from feerecon.schemas.common import APIResponse
from feerecon.schemas.students import AvailableTerms
from feerecon.services.admission_service import available_terms
from feerecon.services.balance_service import BalanceService

router = APIRouter(prefix="/students", tags=["Students"])


@router.get("/{student_id}/admission-term", response_model=APIResponse[AvailableTerms])
async def get_admission_term(
    student_id: str,
    balances: BalanceService = Depends(get_balance_service),
):
    student = await balances.load_student(student_id)
    if student is None:
        raise HTTPException(status_code=404, detail="Student not found")
    return APIResponse(data=available_terms(student))
