# ============================================================
# feerecon/services/admission_service.py
#
# When did this student join, and which terms can they owe for?
#
# The school year has three terms, mapped from the calendar:
#   Jan–Apr → Term 1
#   May–Aug → Term 2
#   Sep–Dec → Term 3
#
# A student admitted in Term 2 2025 cannot owe Term 1 2025 fees.
# Everything here is pure; dates in, (term, year) out.
# ============================================================

from datetime import date, datetime
from typing import Optional, Union
from zoneinfo import ZoneInfo
import re

from feerecon.core.config import settings
from feerecon.schemas.students import AdmissionTerm, AvailableTerms, Student

TERMS = ("Term 1", "Term 2", "Term 3")

_TERM_SUFFIX = re.compile(r"(\d+)\s*$")


def school_today() -> date:
    return datetime.now(ZoneInfo(settings.SCHOOL_TIMEZONE)).date()


def to_school_time(moment: datetime) -> datetime:
    """Aware timestamps move to the school's timezone; naive ones are already local."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(ZoneInfo(settings.SCHOOL_TIMEZONE))


def term_for_month(month: int) -> str:
    if 1 <= month <= 4:
        return "Term 1"
    if 5 <= month <= 8:
        return "Term 2"
    return "Term 3"


def term_number(term: Optional[str]) -> Optional[int]:
    """'Term 2' → 2. Anything that isn't Term 1..3 → None."""
    match = _TERM_SUFFIX.search(str(term or ""))
    if not match:
        return None
    number = int(match.group(1))
    return number if 1 <= number <= len(TERMS) else None


def _year_number(year: Union[str, int, None]) -> Optional[int]:
    try:
        return int(str(year).strip())
    except (TypeError, ValueError):
        return None


def admission_term(
    student: Optional[Student],
    default_term: Optional[str] = None,
    default_year: Optional[str] = None,
) -> AdmissionTerm:
    """
    Admission (term, year) from student.created_at.

    No created_at → the configured fallback (Term 3 2025 unless
    overridden in settings). That's a documented default, not a
    silent zero.
    """
    if student is None or student.created_at is None:
        return AdmissionTerm(
            term=default_term or settings.DEFAULT_ADMISSION_TERM,
            year=str(default_year or settings.DEFAULT_ADMISSION_YEAR),
        )
    joined = to_school_time(student.created_at)
    return AdmissionTerm(term=term_for_month(joined.month), year=str(joined.year))


def is_before(
    candidate_term: Optional[str],
    candidate_year: Union[str, int, None],
    admission: AdmissionTerm,
) -> bool:
    """
    True if (candidate_year, candidate_term) comes strictly before
    the admission term. Malformed input is never "before"; the
    gate only suppresses fees when it is sure.
    """
    cand_term, cand_year = term_number(candidate_term), _year_number(candidate_year)
    adm_term, adm_year = term_number(admission.term), _year_number(admission.year)
    if None in (cand_term, cand_year, adm_term, adm_year):
        return False
    return (cand_year, cand_term) < (adm_year, adm_term)


def previous_term(term: Optional[str], year: Union[str, int, None]) -> Optional[tuple[str, str]]:
    """Term 1 2025 → (Term 3, 2024); Term 3 2025 → (Term 2, 2025)."""
    number, year_num = term_number(term), _year_number(year)
    if number is None or year_num is None:
        return None
    if number == 1:
        return TERMS[-1], str(year_num - 1)
    return TERMS[number - 2], str(year_num)


def current_term(today: Optional[date] = None) -> tuple[str, str]:
    # A pinned term in settings wins over the calendar
    if settings.CURRENT_TERM and settings.CURRENT_YEAR:
        return settings.CURRENT_TERM, str(settings.CURRENT_YEAR)
    today = today or school_today()
    return term_for_month(today.month), str(today.year)


def available_terms(student: Student, today: Optional[date] = None) -> AvailableTerms:
    """Years from admission up to next year; every term in each."""
    admission = admission_term(student)
    today = today or school_today()
    first_year = _year_number(admission.year) or today.year
    years = [str(y) for y in range(first_year, today.year + 2)]
    return AvailableTerms(
        student_id=student.id,
        admission=admission,
        terms=list(TERMS),
        years=years,
    )
