# feerecon/utils/receipt.py
# Generates human-readable receipt numbers: RC/2025/0314093012457

from datetime import datetime
from typing import Optional


def generate_receipt_number(now: Optional[datetime] = None) -> str:
    """
    Format: RC/{year}/{month}{day}{hour}{minute}{second}{millis}
    Millisecond suffix keeps two desks posting in the same second apart.
    """
    now = now or datetime.now()
    return f"RC/{now.year}/{now.strftime('%m%d%H%M%S')}{now.microsecond // 1000:03d}"
