# ============================================================
# feerecon/core/dependencies.py
#
# FastAPI Depends() providers for the engine's moving parts.
#
# How it flows:
#   Request → get_store()           fresh StoreClient from settings
#           → get_resolver()        resolver + the process-wide cache
#           → get_balance_service() resolver + the process-wide board
#           → endpoint receives BalanceService as a parameter
#
# The cache and the board are created once per process and handed
# out through here; nothing reaches for them as globals. Tests
# swap any of these with app.dependency_overrides.
# ============================================================

from fastapi import Depends

from feerecon.core.store import StoreClient
from feerecon.services.balance_service import BalanceService
from feerecon.services.fee_structure_service import FeeStructureCache, FeeStructureResolver
from feerecon.utils.sequencing import LatestResultBoard

_fee_cache = FeeStructureCache()
_balance_board: LatestResultBoard = LatestResultBoard()


def get_store() -> StoreClient:
    return StoreClient.from_settings()


def get_fee_cache() -> FeeStructureCache:
    return _fee_cache


def get_balance_board() -> LatestResultBoard:
    return _balance_board


def get_resolver(
    store: StoreClient = Depends(get_store),
    cache: FeeStructureCache = Depends(get_fee_cache),
) -> FeeStructureResolver:
    return FeeStructureResolver(store, cache)


def get_balance_service(
    store: StoreClient = Depends(get_store),
    resolver: FeeStructureResolver = Depends(get_resolver),
    board: LatestResultBoard = Depends(get_balance_board),
) -> BalanceService:
    return BalanceService(store, resolver, board)
