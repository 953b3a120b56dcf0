# feerecon/utils/idempotency.py
#
# Replay protection for payment submissions.
#
# A double-click on "Record payment" (or a browser retry after a
# timeout) must not record the same mobile-money reference twice.
# The first response is remembered per payment reference for
# IDEMPOTENCY_TTL_SECONDS; replays get that response back instead
# of a second POST to the store. A reference is claimed before
# the POST, so a second submission racing the first never posts.
#
# Backed by a local sqlite file so every uvicorn worker on the box
# sees the same keys.

import json
import sqlite3
import time
from pathlib import Path
from typing import Any, Optional

from feerecon.core.config import settings

_DEFAULT_DB_PATH = getattr(settings, "IDEMPOTENCY_DB_PATH", "/tmp/feerecon_idempotency.db")

_KIND_PAYMENT = "payment"


def _connect(db_path: Optional[str] = None) -> sqlite3.Connection:
    path = Path(db_path or _DEFAULT_DB_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=5, isolation_level=None)
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS idempotency_cache (
            kind TEXT NOT NULL,
            cache_key TEXT NOT NULL,
            created_at INTEGER NOT NULL,
            payload TEXT,
            PRIMARY KEY (kind, cache_key)
        )
        """
    )
    return conn


def _cleanup(conn: sqlite3.Connection, kind: str, ttl_seconds: int, now_ts: int) -> None:
    cutoff = now_ts - int(ttl_seconds)
    conn.execute(
        "DELETE FROM idempotency_cache WHERE kind = ? AND created_at < ?",
        (kind, cutoff),
    )


def payment_replay_key(student_id: str, payment_reference: Optional[str]) -> Optional[str]:
    """No reference, no replay protection; cash without a slip number is allowed."""
    reference = str(payment_reference or "").strip()
    if not reference:
        return None
    return f"{student_id}:{reference.lower()}"


def get_payment_replay(
    cache_key: str,
    ttl_seconds: int,
    db_path: Optional[str] = None,
) -> Optional[dict[str, Any]]:
    now_ts = int(time.time())
    conn = _connect(db_path)
    try:
        _cleanup(conn, _KIND_PAYMENT, ttl_seconds, now_ts)
        row = conn.execute(
            "SELECT payload FROM idempotency_cache WHERE kind = ? AND cache_key = ?",
            (_KIND_PAYMENT, cache_key),
        ).fetchone()
        if not row or not row[0]:
            return None
        return json.loads(row[0])
    finally:
        conn.close()


def remember_payment(
    cache_key: str,
    payload: dict[str, Any],
    db_path: Optional[str] = None,
) -> None:
    now_ts = int(time.time())
    conn = _connect(db_path)
    try:
        conn.execute(
            """
            INSERT INTO idempotency_cache (kind, cache_key, created_at, payload)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(kind, cache_key) DO UPDATE SET
                created_at = excluded.created_at,
                payload = excluded.payload
            """,
            (_KIND_PAYMENT, cache_key, now_ts, json.dumps(payload, default=str)),
        )
    finally:
        conn.close()


def reserve_payment(
    cache_key: str,
    ttl_seconds: int,
    db_path: Optional[str] = None,
) -> bool:
    """
    Claim a payment reference before it is posted to the store.

    Returns True for the caller that got the claim. A second caller
    with the same key gets False until the claim is released or
    replaced by remember_payment().
    """
    now_ts = int(time.time())
    conn = _connect(db_path)
    try:
        _cleanup(conn, _KIND_PAYMENT, ttl_seconds, now_ts)
        cur = conn.execute(
            """
            INSERT OR IGNORE INTO idempotency_cache (kind, cache_key, created_at, payload)
            VALUES (?, ?, ?, NULL)
            """,
            (_KIND_PAYMENT, cache_key, now_ts),
        )
        return cur.rowcount == 1
    finally:
        conn.close()


def release_payment(cache_key: str, db_path: Optional[str] = None) -> None:
    """Drop an unfinished claim so the payment can be retried."""
    conn = _connect(db_path)
    try:
        conn.execute(
            "DELETE FROM idempotency_cache WHERE kind = ? AND cache_key = ? AND payload IS NULL",
            (_KIND_PAYMENT, cache_key),
        )
    finally:
        conn.close()
