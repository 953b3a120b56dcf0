# ============================================================
# feerecon/services/fee_structure_service.py
#
# Which fee items does a class owe for a term?
#
# FeeStructureResolver
# ├── Asks the store: GET /fee-structures/{class}?term=&year=
# ├── Store down / non-2xx → {items: [], total: 0} + warning
# ├── Student admitted AFTER the requested term → empty, no matter
# │   what the store holds
# └── Writes what it fetched into FeeStructureCache
#
# FeeStructureCache
# ├── Keyed by class name, no TTL
# ├── Cleared explicitly: after a payment, after a fee edit
# └── Advisory only. Balance computations always fetch fresh;
#     only the fee-structure browse endpoint reads from it.
#
# LEARNING NOTE: The cache stores the store's items BEFORE the
# admission gate and residence filter. Those depend on the
# student, the cache doesn't.
# ============================================================

from dataclasses import dataclass, field
from typing import Iterable, Optional
import logging
import threading

from pydantic import ValidationError

from feerecon.core.store import StoreClient
from feerecon.schemas.fees import FeeItem, ResolvedFees
from feerecon.schemas.students import Student
from feerecon.services.admission_service import admission_term, is_before

logger = logging.getLogger(__name__)


@dataclass
class CachedFeeStructure:
    items: list[FeeItem] = field(default_factory=list)
    term: Optional[str] = None
    year: Optional[str] = None

    def matches(self, term: Optional[str], year: Optional[str]) -> bool:
        return (self.term or "").lower() == (term or "").lower() and (self.year or "") == (year or "")


class FeeStructureCache:
    """
    In-memory, explicitly invalidated. Thread-safe; FastAPI runs
    sync dependencies in a thread pool, so a plain dict won't do.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: dict[str, CachedFeeStructure] = {}

    def get(self, key: str) -> Optional[CachedFeeStructure]:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, entry: CachedFeeStructure) -> None:
        with self._lock:
            self._entries[key] = entry

    def invalidate(self, key: Optional[str]) -> bool:
        if not key:
            return False
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _parse_items(rows: Iterable[dict], class_name: str) -> list[FeeItem]:
    items = []
    for row in rows:
        try:
            item = FeeItem.model_validate(row)
        except ValidationError as e:
            logger.warning(f"Skipping malformed fee item for {class_name}: {e}")
            continue
        if not item.class_name:
            item.class_name = class_name
        items.append(item)
    return items


def _in_scope(item: FeeItem, term: str, year: str) -> bool:
    # Items without term/year metadata apply to every term
    if item.term and item.term.strip().lower() != term.strip().lower():
        return False
    if item.year and item.year.strip() != str(year).strip():
        return False
    return True


def _identity(item: FeeItem) -> tuple[str, str, str, str]:
    return (
        (item.class_name or "").strip().lower(),
        (item.term or "").strip().lower(),
        (item.year or "").strip(),
        item.fee_name.strip().lower(),
    )


def _dedupe(items: list[FeeItem]) -> list[FeeItem]:
    """
    Same fee listed twice → keep the higher amount, first position.
    Identity is (class, term, year, name), so Tuition for Term 1 and
    Tuition for Term 2 are two fees, not a duplicate.
    """
    best: dict[tuple[str, str, str, str], FeeItem] = {}
    for item in items:
        key = _identity(item)
        if key not in best or item.amount > best[key].amount:
            best[key] = item
    return list(best.values())


class FeeStructureResolver:

    def __init__(self, store: StoreClient, cache: Optional[FeeStructureCache] = None):
        self.store = store
        self.cache = cache if cache is not None else FeeStructureCache()

    async def resolve(
        self,
        class_name: Optional[str],
        term: Optional[str] = None,
        year: Optional[str] = None,
        student: Optional[Student] = None,
        use_cache: bool = False,
    ) -> ResolvedFees:
        """
        {items, total} for a class in a term.

        term/year only scope the lookup when BOTH are given.
        Never raises; every failure path is an empty result.
        """
        cls = str(class_name or "").strip()
        if not cls:
            logger.warning("Empty class name passed to fee structure resolver")
            return ResolvedFees.empty()

        scoped = bool(term and year)
        term, year = (term, str(year)) if scoped else (None, None)

        if scoped and student is not None:
            admission = admission_term(student)
            if is_before(term, year, admission):
                logger.info(
                    f"No fees for {term} {year}: student {student.id} "
                    f"joined in {admission.term} {admission.year}"
                )
                return ResolvedFees.empty()

        if use_cache:
            cached = self.cache.get(cls)
            if cached is not None and cached.matches(term, year):
                return ResolvedFees.from_items(cached.items)

        rows = await self.store.fetch_fee_structures(cls, term, year)
        if rows is None:
            logger.warning(f"Fee structure for {cls} unavailable, returning empty structure")
            return ResolvedFees.empty()

        items = _parse_items(rows, cls)
        if scoped:
            items = [i for i in items if _in_scope(i, term, year)]
        items = _dedupe(items)

        self.cache.set(cls, CachedFeeStructure(items=items, term=term, year=year))
        logger.debug(f"Resolved {len(items)} fee items for {cls} ({term or 'all terms'} {year or ''})")
        return ResolvedFees.from_items(items)
