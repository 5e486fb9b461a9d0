from __future__ import annotations

import os
from typing import List, Optional


def _get_env_int(name: str, default: int) -> int:
    try:
        return int(str(os.getenv(name, str(default))).strip())
    except ValueError:
        return default


def _get_env_float(name: str, default: float) -> float:
    try:
        return float(str(os.getenv(name, str(default))).strip())
    except ValueError:
        return default


def _get_env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    return v.strip()


# Optional JSON file replacing the built-in exercise table
REPIFY_EXERCISES_PATH = _get_env_str("REPIFY_EXERCISES_PATH")
# Landmarks below this confidence are treated as missing; 0 disables the floor
REPIFY_MIN_CONFIDENCE = _get_env_float("REPIFY_MIN_CONFIDENCE", 0.0)
REPIFY_MAX_SESSIONS = _get_env_int("REPIFY_MAX_SESSIONS", 64)
REPIFY_LOG_LEVEL = _get_env_str("REPIFY_LOG_LEVEL", "INFO")
REPIFY_CORS_ORIGINS: List[str] = [
    o.strip() for o in (_get_env_str("REPIFY_CORS_ORIGINS", "*") or "*").split(",") if o.strip()
]
