# ============================================================
# feerecon/utils/billing_types.py
#
# The billing-type synonym table.
#
# Fee structures and payment records are typed in by different
# people at different times: the bursar records a payment as
# "Tuition", the fee structure calls it "Tuition Fee". Both have
# to land on the same key or the student looks like they owe
# money they already paid.
#
# LEARNING NOTE: This is DATA, not logic. Add a row here when a
# new spelling shows up in the store; don't add substring
# checks like `"tuit" in name` anywhere else. Bump the version
# whenever the table changes so summaries can be traced back to
# the table that produced them.
# ============================================================

import re
from typing import Optional

BILLING_TYPE_TABLE_VERSION = "2025.2"

GENERAL_FEE = "General Fee"
PREVIOUS_BALANCE = "Previous Fee Balance"

# raw name (lower-cased, single-spaced) → canonical key
BILLING_TYPE_SYNONYMS: dict[str, str] = {
    "tuition":           "tuition",
    "tuition fee":       "tuition",
    "tuition fees":      "tuition",
    "school fees":       "tuition",
    "uniform":           "uniform",
    "uniform fee":       "uniform",
    "uniforms":          "uniform",
    "library":           "library",
    "library fee":       "library",
    "development":       "development",
    "development fee":   "development",
    "development levy":  "development",
    "boarding":          "boarding",
    "boarding fee":      "boarding",
    "boarding fees":     "boarding",
    "lunch":             "lunch",
    "lunch fee":         "lunch",
    "lunch fees":        "lunch",
    "general":           "general",
    "general fee":       "general",
    "payment":           "general",
}

_WHITESPACE = re.compile(r"\s+")


def normalize_billing_type(raw: Optional[str]) -> str:
    """
    Canonical key for a fee or billing-type name.

    Known spellings fold through BILLING_TYPE_SYNONYMS. Unknown
    names keep their own lower-cased form, so "Exam Fee" on a fee
    item still matches "exam fee" on a payment.
    """
    name = _WHITESPACE.sub(" ", str(raw or "").strip().lower())
    if not name:
        return "general"
    return BILLING_TYPE_SYNONYMS.get(name, name)
