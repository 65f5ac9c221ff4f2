from __future__ import annotations

from dataclasses import dataclass

from ..validation import TmsError


@dataclass
class TripResult:
    """
    Outcome of a trip business operation.

    Expected conditions (ConflictError, NotFoundError) come back as ok=False
    with the error attached; validation and infrastructure failures are raised.
    """
    ok: bool
    trip: dict | None = None
    error: TmsError | None = None

    @classmethod
    def success(cls, trip: dict) -> "TripResult":
        return cls(ok=True, trip=trip)

    @classmethod
    def failure(cls, error: TmsError) -> "TripResult":
        return cls(ok=False, error=error)

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "trip": self.trip,
            "error": self.error.to_dict() if self.error else None,
        }
