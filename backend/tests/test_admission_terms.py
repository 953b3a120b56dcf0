from datetime import date

import pytest

from feerecon.core.config import settings
from feerecon.schemas.students import AdmissionTerm, Student
from feerecon.services.admission_service import (
    admission_term, available_terms, current_term, is_before, previous_term, term_number,
)


@pytest.mark.parametrize("created_at, expected", [
    ("2025-01-03T09:00:00Z", ("Term 1", "2025")),
    ("2025-04-30T20:00:00Z", ("Term 1", "2025")),
    ("2025-05-01T00:00:00Z", ("Term 2", "2025")),
    ("2025-08-31T12:00:00", ("Term 2", "2025")),
    ("2024-09-01", ("Term 3", "2024")),
    ("2024-12-20T10:00:00+03:00", ("Term 3", "2024")),
])
def test_admission_term_from_created_at(created_at, expected):
    student = Student(id="1", created_at=created_at)
    adm = admission_term(student)
    assert (adm.term, adm.year) == expected


def test_utc_timestamp_is_read_in_school_time(monkeypatch):
    # 22:00 UTC on 30 April is already 1 May in Kampala
    student = Student(id="1", created_at="2025-04-30T22:00:00Z")
    assert admission_term(student).term == "Term 2"

    monkeypatch.setattr(settings, "SCHOOL_TIMEZONE", "UTC")
    assert admission_term(student).term == "Term 1"


def test_new_year_boundary_moves_admission_year():
    student = Student(id="1", created_at="2024-12-31T22:30:00Z")
    assert (admission_term(student).term, admission_term(student).year) == ("Term 1", "2025")


def test_missing_created_at_falls_back_to_term_3_2025():
    adm = admission_term(Student(id="1"))
    assert (adm.term, adm.year) == ("Term 3", "2025")


def test_unparseable_created_at_is_treated_as_missing():
    student = Student(id="1", createdAt="not a date")
    assert student.created_at is None
    assert admission_term(student).term == settings.DEFAULT_ADMISSION_TERM


def test_is_before_compares_year_then_term():
    adm = AdmissionTerm(term="Term 2", year="2025")
    assert is_before("Term 1", "2025", adm) is True
    assert is_before("Term 3", "2024", adm) is True
    assert is_before("Term 2", "2025", adm) is False
    assert is_before("Term 3", "2025", adm) is False
    assert is_before("Term 1", "2026", adm) is False


def test_is_before_never_suppresses_on_malformed_input():
    adm = AdmissionTerm(term="Term 2", year="2025")
    assert is_before("Holiday", "2020", adm) is False
    assert is_before("Term 1", "twenty", adm) is False
    assert is_before("Term 9", "2020", adm) is False


def test_term_number():
    assert term_number("Term 3") == 3
    assert term_number(" term 1 ") == 1
    assert term_number("Term 4") is None
    assert term_number(None) is None


def test_previous_term_wraps_into_last_year():
    assert previous_term("Term 1", "2025") == ("Term 3", "2024")
    assert previous_term("Term 3", 2025) == ("Term 2", "2025")
    assert previous_term("bogus", "2025") is None


def test_current_term_from_calendar(monkeypatch):
    monkeypatch.setattr(settings, "CURRENT_TERM", None)
    monkeypatch.setattr(settings, "CURRENT_YEAR", None)
    assert current_term(date(2025, 6, 15)) == ("Term 2", "2025")


def test_current_term_pinned_in_settings(monkeypatch):
    monkeypatch.setattr(settings, "CURRENT_TERM", "Term 1")
    monkeypatch.setattr(settings, "CURRENT_YEAR", "2026")
    assert current_term(date(2025, 6, 15)) == ("Term 1", "2026")


def test_available_terms_start_at_admission_year():
    student = Student(id="7", created_at="2024-10-01")
    result = available_terms(student, today=date(2025, 3, 1))
    assert result.admission.term == "Term 3"
    assert result.years == ["2024", "2025", "2026"]
    assert result.terms == ["Term 1", "Term 2", "Term 3"]
