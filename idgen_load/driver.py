"""
Request driver: one ID-generation round trip per virtual-user iteration.

Each call to :func:`run_iteration` issues a single ``POST`` to the ID
endpoint, validates the response, records exactly one outcome in the
shared :class:`~idgen_load.metrics.MetricsStore`, and checks the
returned ID against the calling virtual user's own set of seen IDs.

The checks mirror what a client of the generator relies on:

1. ``status is 200``
2. ``response is JSON`` (``Content-Type`` contains ``application/json``)
3. ``response has id field`` (only evaluated when 1 and 2 hold)

Nothing in here raises for a bad response or a network error.  Those
become :class:`~idgen_load.outcomes.Failure` outcomes so the run keeps
going and the thresholds decide the verdict at the end.

Duplicate detection is deliberately per virtual user.  Spotting the
same ID handed to two different users needs the logged IDs from the
whole run; see :mod:`idgen_load.id_audit`.

Key Concepts Demonstrated:
- ``catch_response=True`` so Locust's statistics agree with ours
- Failure classification ordered by which check breaks first
- VU-local state passed in explicitly rather than held globally
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import requests

from idgen_load.metrics import MetricsStore
from idgen_load.outcomes import (
    CHECK_ID,
    CHECK_JSON,
    CHECK_STATUS,
    Failure,
    FailureReason,
    RequestOutcome,
    Success,
)

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
ACCEPT_JSON_HEADERS = {"Accept": JSON_CONTENT_TYPE}


@dataclass
class VirtualUserContext:
    """
    State owned by one virtual user for its whole lifetime.

    Attributes:
        vu_id: 1-based virtual user number used in log lines.
        iteration: Number of iterations started so far (the next
            iteration's 0-based index).
        seen_ids: IDs this user has already received.
    """

    vu_id: int
    iteration: int = 0
    seen_ids: set[str] = field(default_factory=set)

    def begin_iteration(self) -> int:
        """Return the index of the iteration that is starting and advance."""
        current = self.iteration
        self.iteration += 1
        return current

    def remember(self, body_id: str) -> bool:
        """Store ``body_id`` and return ``True`` if this user had already seen it."""
        if body_id in self.seen_ids:
            return True
        self.seen_ids.add(body_id)
        return False


def _content_type(response: Any) -> str:
    headers = getattr(response, "headers", None) or {}
    return headers.get("Content-Type") or ""


def classify_response(
    response: Any, latency_ms: float
) -> tuple[RequestOutcome, dict[str, bool]]:
    """
    Turn a response into an outcome plus the named check results.

    A status code of ``0`` is how Locust's ``HttpSession`` reports a
    connection error or timeout, so it is classified as a transport
    failure rather than a wrong status.

    Args:
        response: A Locust/requests ``Response`` (or compatible fake).
        latency_ms: Measured round-trip time for this request.

    Returns:
        ``(outcome, checks)`` where ``checks`` maps check names to
        pass/fail in evaluation order.
    """
    status_code = response.status_code
    if not status_code:
        error = getattr(response, "error", None)
        detail = str(error) if error else "no response received"
        checks = {CHECK_STATUS: False, CHECK_JSON: False}
        return Failure(FailureReason.TRANSPORT, detail=detail), checks

    status_ok = status_code == 200
    json_ok = JSON_CONTENT_TYPE in _content_type(response)
    checks = {CHECK_STATUS: status_ok, CHECK_JSON: json_ok}

    if not status_ok:
        failure = Failure(
            FailureReason.STATUS,
            latency_ms=latency_ms,
            status_code=status_code,
            detail=f"Expected 200, got {status_code}",
        )
        return failure, checks

    if not json_ok:
        failure = Failure(
            FailureReason.CONTENT_TYPE,
            latency_ms=latency_ms,
            status_code=status_code,
            detail=f"Expected {JSON_CONTENT_TYPE}, got {_content_type(response) or 'none'}",
        )
        return failure, checks

    try:
        body = response.json()
    except ValueError:
        body = None

    if not isinstance(body, dict):
        checks[CHECK_ID] = False
        failure = Failure(
            FailureReason.INVALID_JSON,
            latency_ms=latency_ms,
            status_code=status_code,
            detail="Response body is not a JSON object",
        )
        return failure, checks

    body_id = body.get("id")
    checks[CHECK_ID] = body_id is not None
    if body_id is None:
        failure = Failure(
            FailureReason.MISSING_ID,
            latency_ms=latency_ms,
            status_code=status_code,
            detail="Response missing id field",
        )
        return failure, checks

    return Success(status_code=status_code, latency_ms=latency_ms, body_id=str(body_id)), checks


def _track_id(vu: VirtualUserContext, iteration: int, body_id: str, store: MetricsStore, log_ids: bool) -> None:
    if log_ids:
        logger.info("[VU: %d, Iter: %d] ID: %s", vu.vu_id, iteration, body_id)

    if vu.remember(body_id):
        store.record_duplicate()
        logger.warning(
            "[VU: %d, Iter: %d] Duplicate ID detected within VU: %s",
            vu.vu_id,
            iteration,
            body_id,
        )


def run_iteration(
    client: Any,
    vu: VirtualUserContext,
    store: MetricsStore,
    *,
    path: str,
    timeout: float | None = None,
    log_ids: bool = True,
    clock: Callable[[], float] = time.perf_counter,
) -> RequestOutcome:
    """
    Perform one request/validate/record cycle for ``vu``.

    Args:
        client: Locust ``HttpSession`` (anything whose ``post`` accepts
            ``catch_response=True`` and returns a context manager).
        vu: The calling virtual user's context.
        store: Shared metrics store.
        path: Endpoint path, resolved against the client's base URL.
        timeout: Per-request timeout in seconds (``None`` = transport
            default).
        log_ids: Emit the per-iteration ``ID:`` log line.
        clock: Timer used for latency measurement.

    Returns:
        The outcome that was recorded.
    """
    iteration = vu.begin_iteration()
    started = clock()

    try:
        with client.post(
            path,
            headers=ACCEPT_JSON_HEADERS,
            timeout=timeout,
            name=f"{path} [POST]",
            catch_response=True,
        ) as response:
            latency_ms = (clock() - started) * 1000.0
            outcome, checks = classify_response(response, latency_ms)
            if isinstance(outcome, Failure):
                response.failure(outcome.describe())
            else:
                response.success()
    except requests.RequestException as exc:
        outcome = Failure(FailureReason.TRANSPORT, detail=str(exc))
        checks = {CHECK_STATUS: False, CHECK_JSON: False}

    store.record(outcome, checks)

    if isinstance(outcome, Success) and outcome.body_id is not None:
        _track_id(vu, iteration, outcome.body_id, store, log_ids)
    elif isinstance(outcome, Failure):
        logger.debug("[VU: %d, Iter: %d] %s", vu.vu_id, iteration, outcome.describe())

    return outcome
