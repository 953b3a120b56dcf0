# feerecon/schemas/students.py

from pydantic import AliasChoices, Field, field_validator
from typing import Optional, List, Any
from datetime import datetime, date
from enum import Enum

from feerecon.schemas.common import CamelModel


class ResidenceType(str, Enum):
    day      = "Day"
    boarding = "Boarding"


class Student(CamelModel):
    """
    The slice of a student record the fee engine needs.

    residence_type is the ONLY place residence comes from. It is
    never guessed from the class name ("S.1 Boarders") or anything
    else; an unknown value simply means None, and None is billed
    like a Day student.
    """
    id: str
    name: Optional[str] = None
    class_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("class", "className", "class_name"),
        serialization_alias="class",
    )
    residence_type: Optional[ResidenceType] = None
    created_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id(cls, v: Any) -> str:
        return str(v)

    @field_validator("class_name", mode="before")
    @classmethod
    def _class_name(cls, v: Any) -> Optional[str]:
        name = str(v or "").strip()
        return name or None

    @field_validator("residence_type", mode="before")
    @classmethod
    def _residence(cls, v: Any) -> Optional[ResidenceType]:
        raw = str(v or "").strip().lower()
        if raw == "day":
            return ResidenceType.day
        if raw == "boarding":
            return ResidenceType.boarding
        return None

    @field_validator("created_at", mode="before")
    @classmethod
    def _created_at(cls, v: Any) -> Optional[datetime]:
        if v is None or v == "":
            return None
        if isinstance(v, datetime):
            return v
        if isinstance(v, date):
            return datetime(v.year, v.month, v.day)
        try:
            return datetime.fromisoformat(str(v).strip().replace("Z", "+00:00"))
        except ValueError:
            return None


class AdmissionTerm(CamelModel):
    term: str       # "Term 1" | "Term 2" | "Term 3"
    year: str


class AvailableTerms(CamelModel):
    """Response body for GET /students/{id}/admission-term."""
    student_id: str
    admission: AdmissionTerm
    terms: List[str]
    years: List[str]
