import json
import os
import sys
from pathlib import Path
from urllib.parse import unquote

import httpx
import pytest


# Ensure `import feerecon...` resolves when tests run from repo root.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))


# Minimal defaults so settings can initialize in test environments.
os.environ.setdefault("STORE_BASE_URL", "http://store.test/api")
os.environ.setdefault("ENVIRONMENT", "test")


from feerecon.core.store import StoreClient  # noqa: E402

STORE_URL = "http://store.test/api"


class FakeStore:
    """
    In-memory stand-in for the school backend, served through
    httpx.MockTransport so StoreClient runs its real HTTP code.
    """

    def __init__(self):
        self.students: dict[str, dict] = {}
        self.fee_structures: dict[str, list[dict]] = {}
        self.records: dict[str, list[dict]] = {}
        self.submitted: list[dict] = []
        self.calls: list[tuple[str, str, dict]] = []
        self.down = False
        self.status_overrides: dict[str, int] = {}   # path prefix → status
        self.blockers: dict[tuple[str, str], object] = {}  # (path prefix, term) → asyncio.Event

    def add_student(self, student_id, class_name="S.1", residence="Day", created_at="2025-02-10T08:00:00Z", **extra):
        self.students[str(student_id)] = {
            "id": student_id,
            "name": extra.pop("name", f"Student {student_id}"),
            "class": class_name,
            "residenceType": residence,
            "createdAt": created_at,
            **extra,
        }

    def add_fee(self, class_name, fee_name, amount, term="Term 1", year="2025", **extra):
        rows = self.fee_structures.setdefault(class_name, [])
        rows.append({
            "id": len(rows) + 1,
            "feeName": fee_name,
            "amount": amount,
            "frequency": "termly",
            "term": term,
            "year": year,
            **extra,
        })

    def add_record(self, student_id, billing_type, amount, status="paid", term="Term 1", year="2025", type="payment"):
        self.records.setdefault(str(student_id), []).append({
            "studentId": str(student_id),
            "type": type,
            "billingType": billing_type,
            "amount": amount,
            "status": status,
            "term": term,
            "year": year,
        })

    # ── transport ────────────────────────────────────────────
    async def handler(self, request: httpx.Request) -> httpx.Response:
        path = unquote(request.url.path)
        if path.startswith("/api"):
            path = path[len("/api"):]
        params = dict(request.url.params)
        self.calls.append((request.method, path, params))

        if self.down:
            raise httpx.ConnectError("store is down", request=request)

        for prefix, code in self.status_overrides.items():
            if path.startswith(prefix):
                return httpx.Response(code, json={"error": "boom"})

        for (prefix, term), event in self.blockers.items():
            if path.startswith(prefix) and params.get("term") == term:
                await event.wait()

        if path == "/health":
            return httpx.Response(200, json={"status": "ok"})

        if path.startswith("/fee-structures/"):
            class_name = path[len("/fee-structures/"):]
            rows = self.fee_structures.get(class_name, [])
            term, year = params.get("term"), params.get("year")
            if term and year:
                rows = [r for r in rows if r.get("term") == term and str(r.get("year")) == year]
            return httpx.Response(200, json={"feeStructures": rows})

        if path.startswith("/payments/summary/"):
            student_id = path[len("/payments/summary/"):]
            records = self.records.get(student_id, [])
            # The store's own totals are deliberately wrong; the
            # engine must ignore them.
            return httpx.Response(200, json={
                "totalPaid": 999999999,
                "totalFeesRequired": 1,
                "paymentBreakdown": [],
                "financialRecords": records,
            })

        if path.startswith("/students/"):
            student_id = path[len("/students/"):]
            student = self.students.get(student_id)
            if student is None:
                return httpx.Response(404, json={"error": "Student not found"})
            return httpx.Response(200, json={"student": student})

        if path == "/payments/process" and request.method == "POST":
            body = json.loads(request.content)
            self.submitted.append(body)
            record = {
                "id": len(self.submitted),
                "studentId": body["studentId"],
                "type": "payment",
                "billingType": body["billingType"],
                "amount": body["amount"],
                "status": "paid",
                "term": body.get("term"),
                "year": body.get("year"),
                "receiptNumber": body.get("receiptNumber"),
            }
            self.records.setdefault(str(body["studentId"]), []).append(record)
            return httpx.Response(200, json={"success": True, "record": record})

        return httpx.Response(404, json={"error": "not found"})

    def client(self) -> StoreClient:
        return StoreClient(STORE_URL, transport=httpx.MockTransport(self.handler))


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def store_client(fake_store) -> StoreClient:
    return fake_store.client()


@pytest.fixture
def s1_fees(fake_store) -> FakeStore:
    """The S.1 Term 1 2025 fee structure used across the scenarios."""
    fake_store.add_fee("S.1", "Tuition", 800000)
    fake_store.add_fee("S.1", "Boarding", 500000)
    fake_store.add_fee("S.1", "Lunch", 50000)
    return fake_store


@pytest.fixture(autouse=True)
def calendar_term(monkeypatch):
    """Tests work from the calendar unless they pin a term themselves."""
    from feerecon.core.config import settings

    monkeypatch.setattr(settings, "CURRENT_TERM", None)
    monkeypatch.setattr(settings, "CURRENT_YEAR", None)
