from __future__ import annotations


class TravelTimeError(Exception):
    """Base class for travel-time provider failures."""


class TravelTimeConfigError(TravelTimeError):
    """Credentials or endpoint configuration is missing. Not retryable."""


class TravelTimeUpstreamError(TravelTimeError):
    """
    The provider call failed: non-2xx status, non-JSON body, timeout or transport error.
    """

    def __init__(self, message: str, *, status: int | None = None, detail: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.detail = detail

    def as_dict(self) -> dict:
        out: dict = {"error": str(self)}
        if self.status is not None:
            out["status"] = self.status
        if self.detail:
            out["detail"] = self.detail
        return out
