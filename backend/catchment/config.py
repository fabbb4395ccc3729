from __future__ import annotations

import os


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if raw:
        try:
            return float(raw)
        except Exception:
            pass
    return default


def debounce_s() -> float:
    # A slider drag fires many changes; only the settled value should hit the network.
    return max(0.0, _env_float("CATCHMENT_DEBOUNCE_MS", 350.0)) / 1000.0


def cache_ttl_s() -> float:
    return max(1.0, _env_float("CATCHMENT_CACHE_TTL_S", 10 * 60.0))


def cache_max_items() -> int:
    return max(1, int(_env_float("CATCHMENT_CACHE_MAX_ITEMS", 256)))
