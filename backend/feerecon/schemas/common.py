# ============================================================
# feerecon/schemas/common.py
#
# LEARNING NOTE: Pydantic schemas define what data looks like
# going IN (store payloads, request bodies) and coming OUT
# (response bodies). They are NOT the store's tables; they are
# the contract.
#
# The store and the React UI both speak camelCase (feeName,
# residenceType, totalPaid). Python code speaks snake_case.
# CamelModel bridges the two: attributes are snake_case, JSON is
# camelCase, and either spelling is accepted on the way in.
# ============================================================

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional, Generic, TypeVar

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ── Standard API response wrapper ────────────────────────────
class APIResponse(BaseModel, Generic[T]):
    """
    Every endpoint returns this shape:
    {
        "success": true,
        "message": "OK",
        "data": { ... }
    }

    The React side always knows where the actual data is and
    whether the call succeeded.
    """
    success: bool = True
    message: str = "OK"
    data: Optional[T] = None
