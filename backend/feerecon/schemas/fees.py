# feerecon/schemas/fees.py

from pydantic import AliasChoices, Field, field_validator
from typing import Optional, List, Any
from decimal import Decimal
from enum import Enum

from feerecon.schemas.common import CamelModel
from feerecon.utils.billing_types import GENERAL_FEE
from feerecon.utils.money import ZERO, non_negative, sum_amounts


class FeeFrequency(str, Enum):
    termly  = "termly"
    annual  = "annual"
    once    = "once"
    monthly = "monthly"


# ── Fee items (read model from the store) ────────────────────
class FeeItem(CamelModel):
    """
    One billable line of a class's fee structure.
    Identity is (class_name, term, year, fee_name).

    The amount is whatever the store says. If the store says
    nothing, the amount is 0; never a made-up default.
    """
    id: Optional[str] = None
    fee_name: str = Field(
        default=GENERAL_FEE,
        validation_alias=AliasChoices("feeName", "fee_name", "name"),
    )
    amount: Decimal = ZERO
    frequency: Optional[str] = None
    term: Optional[str] = None
    year: Optional[str] = None
    class_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("className", "class_name"),
    )

    @field_validator("id", "year", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Optional[str]:
        # Store ids and years come back as ints from some tables
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("fee_name", mode="before")
    @classmethod
    def _fee_name(cls, v: Any) -> str:
        name = str(v or "").strip()
        return name or GENERAL_FEE

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, v: Any) -> Decimal:
        return non_negative(v)

    @field_validator("frequency", mode="before")
    @classmethod
    def _frequency(cls, v: Any) -> Optional[str]:
        if v is None or v == "":
            return None
        raw = str(v).strip()
        try:
            return FeeFrequency(raw.lower()).value
        except ValueError:
            return raw


class ResolvedFees(CamelModel):
    """{items, total}: what the resolver and the residence filter return."""
    items: List[FeeItem] = []
    total: Decimal = ZERO

    @classmethod
    def from_items(cls, items: List[FeeItem]) -> "ResolvedFees":
        return cls(items=list(items), total=sum_amounts(i.amount for i in items))

    @classmethod
    def empty(cls) -> "ResolvedFees":
        return cls(items=[], total=ZERO)


class FeeStructureView(CamelModel):
    """Response body for GET /fees/structure/{class_name}."""
    class_name: str
    term: Optional[str] = None
    year: Optional[str] = None
    residence_type: Optional[str] = None
    items: List[FeeItem] = []
    total: Decimal = ZERO
