from __future__ import annotations

import os
from dataclasses import dataclass

from traveltime.errors import TravelTimeConfigError

DEFAULT_BASE_URL = "https://api.traveltimeapp.com"


@dataclass(frozen=True)
class TravelTimeSettings:
    app_id: str
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    timeout_s: float = 20.0

    def require_credentials(self) -> None:
        if not self.app_id or not self.api_key:
            raise TravelTimeConfigError(
                "Missing TRAVELTIME_APP_ID / TRAVELTIME_API_KEY. "
                "Set them in the backend environment and restart."
            )


def _timeout_s() -> float:
    raw = (os.getenv("TRAVELTIME_TIMEOUT_S") or "").strip()
    if raw:
        try:
            return max(1.0, float(raw))
        except Exception:
            pass
    return 20.0


def settings_from_env() -> TravelTimeSettings:
    return TravelTimeSettings(
        app_id=(os.getenv("TRAVELTIME_APP_ID") or "").strip(),
        api_key=(os.getenv("TRAVELTIME_API_KEY") or "").strip(),
        base_url=(os.getenv("TRAVELTIME_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
        timeout_s=_timeout_s(),
    )
