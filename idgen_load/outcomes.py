"""
Per-iteration result types.

Every iteration of the request driver ends in exactly one
:data:`RequestOutcome`: either :class:`Success` carrying the generated
ID, or :class:`Failure` naming the first check that did not hold.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

CHECK_STATUS = "status is 200"
CHECK_JSON = "response is JSON"
CHECK_ID = "response has id field"


class FailureReason(str, Enum):
    """Why an iteration did not produce a usable ID."""

    TRANSPORT = "transport_error"
    STATUS = "unexpected_status"
    CONTENT_TYPE = "unexpected_content_type"
    INVALID_JSON = "invalid_json"
    MISSING_ID = "missing_id"


@dataclass(frozen=True)
class Success:
    status_code: int
    latency_ms: float
    body_id: str | None = None


@dataclass(frozen=True)
class Failure:
    reason: FailureReason
    latency_ms: float | None = None
    status_code: int | None = None
    detail: str = ""

    def describe(self) -> str:
        """Short human-readable message, also used as the Locust failure text."""
        if self.detail:
            return f"{self.reason.value}: {self.detail}"
        return self.reason.value


RequestOutcome = Union[Success, Failure]
