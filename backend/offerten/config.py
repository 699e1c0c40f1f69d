"""
Pricing configuration — single source of truth for tax, rounding and
session constants.

Import from here in all services and routes rather than hardcoding values.
Rates and categories are NOT defined here; they come from the configuration
store (see services/config_store.py).
"""
from __future__ import annotations

import os

# ── Currency & tax ─────────────────────────────────────────────────────────────

CURRENCY: str = "CHF"

# Swiss VAT (MwSt) applied to the post-discount subtotal
VAT_RATE: float = 0.081

# Every printed amount is a multiple of this step (5-Rappen-Rundung)
ROUNDING_STEP_CHF: str = "0.05"


# ── Manual-edit tracking ───────────────────────────────────────────────────────

# A persisted price counts as manually changed when it differs from the freshly
# computed value by at least this amount (one Rappen).
MANUAL_EDIT_TOLERANCE_CHF: str = "0.01"


# ── Engagements (Einsatzpauschalen) ────────────────────────────────────────────

MIN_ENGAGEMENTS: int = 1
MAX_ENGAGEMENTS: int = 4
DEFAULT_ENGAGEMENTS: int = 2


# ── Persistence ────────────────────────────────────────────────────────────────

# Debounce window between an in-memory state change and the database write
PERSIST_DEBOUNCE_SECONDS: float = float(os.getenv("PERSIST_DEBOUNCE_SECONDS", "0.3"))


# ── Quote defaults ─────────────────────────────────────────────────────────────

DEFAULT_LEAD_TIME: str = os.getenv("DEFAULT_LEAD_TIME", "3 Wochen")
