# feerecon/services/residence_service.py
#
# Day students don't pay boarding. Boarders don't pay lunch
# (meals are inside the boarding fee). That's the whole rule.
#
# Pure function; no store calls, no side effects. Running it
# twice over the same list gives the same list.

from typing import Iterable, Optional, Union
import logging

from feerecon.schemas.fees import FeeItem, ResolvedFees
from feerecon.schemas.students import ResidenceType

logger = logging.getLogger(__name__)

# Substrings, matched against the lower-cased fee name.
# "board" already covers "boarding".
BOARDING_MARKERS = ("board",)
# "luch" is a historical misspelling that exists in real fee
# structures. Keep it until the data is cleaned up.
LUNCH_MARKERS = ("lunch", "luch")


def _as_residence(value: Union[ResidenceType, str, None]) -> ResidenceType:
    if isinstance(value, ResidenceType):
        return value
    if str(value or "").strip().lower() == "boarding":
        return ResidenceType.boarding
    # None / unknown → billed as Day
    return ResidenceType.day


def _mentions(name: str, markers: tuple[str, ...]) -> bool:
    label = name.strip().lower()
    return any(marker in label for marker in markers)


def filter_by_residence(
    items: Iterable[FeeItem],
    residence_type: Optional[Union[ResidenceType, str]] = None,
) -> ResolvedFees:
    """
    Drop fee items that don't apply to this residence type.

    Day (or unknown): remove anything mentioning boarding, keep lunch.
    Boarding:         remove anything mentioning lunch, keep boarding.
    """
    residence = _as_residence(residence_type)
    excluded = LUNCH_MARKERS if residence is ResidenceType.boarding else BOARDING_MARKERS

    kept = []
    for item in items or []:
        if _mentions(item.fee_name, excluded):
            logger.debug(f"Residence filter ({residence.value}): dropping '{item.fee_name}'")
            continue
        kept.append(item)

    return ResolvedFees.from_items(kept)
