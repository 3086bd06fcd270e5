"""
colloquy.constants — Shared Defaults
====================================

Single source of truth for tuning defaults.  :class:`~colloquy.config.ColloquyConfig`
falls back to these when a key is missing from ``config.yaml``; services
use them when called without a config.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Typing presence
# ---------------------------------------------------------------------------
TYPING_TTL_SECONDS: float = 5.0
TYPING_SWEEP_BUFFER_SECONDS: float = 1.0
SWEEP_INTERVAL_SECONDS: float = 30.0

# Rows removed per sweep batch (keeps each delete transaction short)
SWEEP_BATCH_SIZE = 1_000

# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------
DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 200
ZONE_LIST_LIMIT = 100

# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------
DELETED_PLACEHOLDER = "[deleted]"

ATTACHMENT_TYPES: frozenset[str] = frozenset({"url", "file", "image"})
