"""
colloquy.config — YAML Configuration Loader
===========================================

**Why this file exists:**
This module reads ``config.yaml`` for tuning values (typing TTL, sweep
cadence, page limits).  Secrets and connection strings stay in the
environment (``DATABASE_URL`` via ``.env``) and are read by
:func:`colloquy.database.engine.create_db_engine`.

Usage::

    from colloquy.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.typing_ttl_seconds)    # 5.0
    print(cfg.default_page_limit)    # 50
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from colloquy import constants


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ColloquyConfig:
    """Immutable configuration loaded from ``config.yaml``.

    Every field has a default so ``ColloquyConfig()`` is a valid
    configuration for embedding the engine without a file.
    """

    # Typing presence
    typing_ttl_seconds: float = constants.TYPING_TTL_SECONDS
    typing_sweep_buffer_seconds: float = constants.TYPING_SWEEP_BUFFER_SECONDS
    sweep_interval_seconds: float = constants.SWEEP_INTERVAL_SECONDS

    # Listings
    default_page_limit: int = constants.DEFAULT_PAGE_LIMIT
    max_page_limit: int = constants.MAX_PAGE_LIMIT
    zone_list_limit: int = constants.ZONE_LIST_LIMIT

    # Messages
    deleted_placeholder: str = constants.DELETED_PLACEHOLDER


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> ColloquyConfig:
    """Read *path* and return a :class:`ColloquyConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    ValueError
        If a value cannot be coerced to the field's type.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = ColloquyConfig()
    return ColloquyConfig(
        typing_ttl_seconds=float(
            raw.get("typing_ttl_seconds", defaults.typing_ttl_seconds)
        ),
        typing_sweep_buffer_seconds=float(
            raw.get("typing_sweep_buffer_seconds", defaults.typing_sweep_buffer_seconds)
        ),
        sweep_interval_seconds=float(
            raw.get("sweep_interval_seconds", defaults.sweep_interval_seconds)
        ),
        default_page_limit=int(raw.get("default_page_limit", defaults.default_page_limit)),
        max_page_limit=int(raw.get("max_page_limit", defaults.max_page_limit)),
        zone_list_limit=int(raw.get("zone_list_limit", defaults.zone_list_limit)),
        deleted_placeholder=str(
            raw.get("deleted_placeholder", defaults.deleted_placeholder)
        ),
    )
