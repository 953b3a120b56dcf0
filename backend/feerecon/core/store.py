# ============================================================
# feerecon/core/store.py
#
# The ONLY place that talks to the external school store.
#
# The store owns students, fee structures and financial records.
# We read them fresh on every request and never write to them.
# The single exception is forwarding a payment submission.
#
# Failure policy (read this before changing anything):
# ├── READS  → never raise. Network error, timeout, non-2xx or
# │            junk JSON all come back as None, with a warning in
# │            the log. Callers turn None into an empty / zero
# │            result. A flaky store must never crash a balance
# │            screen.
# └── WRITES → submit_payment() raises StoreError. A payment that
#              may not have been recorded is not something we
#              can quietly turn into zero.
#
# LEARNING NOTE: We open a short-lived httpx.AsyncClient per call.
# The store is on the internal network and calls are few per
# request, so pooling buys little. Tests pass an
# httpx.MockTransport in via `transport=`.
# ============================================================

from typing import Any, Optional
from urllib.parse import quote

import httpx
import logging

from feerecon.core.config import settings

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """The store rejected or never received a write."""


class StoreClient:

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            raise ValueError("StoreClient requires a non-empty base_url")
        self.base_url = base_url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls) -> "StoreClient":
        return cls(
            base_url=settings.STORE_BASE_URL,
            api_key=settings.STORE_API_KEY,
            timeout=settings.STORE_TIMEOUT_SECONDS,
        )

    def _client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _get_json(self, path: str, params: Optional[dict] = None) -> Optional[Any]:
        try:
            async with self._client() as client:
                response = await client.get(path, params=params)
        except httpx.HTTPError as e:
            logger.warning(f"Store unreachable for GET {path}: {e}")
            return None

        if not response.is_success:
            logger.warning(f"Store returned {response.status_code} for GET {path}")
            return None

        try:
            return response.json()
        except ValueError:
            logger.warning(f"Store returned non-JSON body for GET {path}")
            return None

    # ── Reads ────────────────────────────────────────────────

    async def fetch_fee_structures(
        self,
        class_name: str,
        term: Optional[str] = None,
        year: Optional[str] = None,
    ) -> Optional[list[dict]]:
        """
        GET /fee-structures/{class}?term=&year=
        The store filters server-side when BOTH term and year are sent.
        """
        params = {"term": term, "year": year} if term and year else None
        data = await self._get_json(f"/fee-structures/{quote(class_name, safe='')}", params)
        if data is None:
            return None
        rows = data.get("feeStructures") if isinstance(data, dict) else None
        if not isinstance(rows, list):
            logger.warning(f"Fee structure payload for {class_name} has no feeStructures list")
            return []
        return [r for r in rows if isinstance(r, dict)]

    async def fetch_financial_records(
        self,
        student_id: str,
        term: Optional[str] = None,
        year: Optional[str] = None,
    ) -> Optional[list[dict]]:
        """
        GET /payments/summary/{student}?term=&year=

        The summary endpoint also sends totalPaid / paymentBreakdown,
        but those are the store's own arithmetic. We only take the raw
        financialRecords and aggregate them ourselves.
        """
        params = {"term": term, "year": year} if term and year else None
        data = await self._get_json(f"/payments/summary/{quote(student_id, safe='')}", params)
        if data is None:
            return None
        rows = data.get("financialRecords") if isinstance(data, dict) else None
        if not isinstance(rows, list):
            return []
        return [r for r in rows if isinstance(r, dict)]

    async def fetch_student(self, student_id: str) -> Optional[dict]:
        data = await self._get_json(f"/students/{quote(student_id, safe='')}")
        if not isinstance(data, dict):
            return None
        student = data.get("student", data)
        return student if isinstance(student, dict) and student.get("id") is not None else None

    # ── Writes ───────────────────────────────────────────────

    async def submit_payment(self, payload: dict) -> dict:
        """POST /payments/process. Raises StoreError unless the store confirms."""
        try:
            async with self._client() as client:
                response = await client.post("/payments/process", json=payload)
        except httpx.HTTPError as e:
            raise StoreError(f"Store unreachable: {e}") from e

        if not response.is_success:
            raise StoreError(f"Store returned {response.status_code} for payment submission")

        try:
            data = response.json()
        except ValueError as e:
            raise StoreError("Store returned non-JSON body for payment submission") from e

        if not isinstance(data, dict) or data.get("success") is False:
            raise StoreError("Store did not confirm the payment")
        return data


# ── Health check ─────────────────────────────────────────────
async def check_store_connection(store: Optional[StoreClient] = None) -> bool:
    store = store or StoreClient.from_settings()
    try:
        async with store._client() as client:
            response = await client.get("/health")
        return response.status_code < 500
    except httpx.HTTPError as e:
        logger.error(f"Store health check failed: {e}")
        return False
