"""
Staged load profile and the Locust shape that follows it.

A run is described by an ordered list of stages, each one a
``(duration, target)`` pair.  Concurrency starts at ``start_target``
(zero by default) and moves linearly towards each stage's target over
that stage's duration, so a single list can express ramp-up, plateau
(same target twice) and ramp-down.  Once the last stage has elapsed the
schedule is over and the shape tells Locust to stop.

Key Concepts Demonstrated:
- Pure, clock-free scheduling function that is trivial to unit test
- Thin ``LoadTestShape`` adapter that only reads the run clock
- Human-friendly duration strings (``"15s"``, ``"5m"``, ``"1h30m"``)
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from locust import LoadTestShape

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


@dataclass(frozen=True)
class Stage:
    """One segment of the ramp: reach ``target`` users over ``duration`` seconds."""

    duration: float
    target: int

    def __post_init__(self) -> None:
        if not math.isfinite(self.duration) or self.duration <= 0:
            raise ValueError(f"Stage duration must be a finite number > 0, got {self.duration}")
        if isinstance(self.target, bool) or not isinstance(self.target, int):
            raise ValueError(f"Stage target must be an integer, got {self.target!r}")
        if self.target < 0:
            raise ValueError(f"Stage target must be >= 0, got {self.target}")


def parse_duration(value: str | float | int) -> float:
    """
    Convert a duration such as ``"15s"`` or ``"1h30m"`` to seconds.

    Bare numbers (or numeric strings) are taken as seconds.

    Args:
        value: Duration string or number.

    Returns:
        The duration in seconds.

    Raises:
        ValueError: If the value is not a finite number, or the string
            contains anything other than ``<number><unit>`` groups with
            units ``h``, ``m``, ``s`` or ``ms``.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip().lower()
        if not text:
            raise ValueError("Duration must not be empty")
        try:
            seconds = float(text)
        except ValueError:
            seconds = _parse_unit_groups(text, value)

    if not math.isfinite(seconds):
        raise ValueError(f"Duration must be finite, got {value!r}")
    return seconds


def _parse_unit_groups(text: str, value: object) -> float:
    position = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            raise ValueError(f"Invalid duration: {value!r}")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()

    if position == 0 or position != len(text):
        raise ValueError(f"Invalid duration: {value!r}")
    return total


def _parse_target(value: Any) -> int:
    """Whole user count from a profile entry; ``2.9`` and ``True`` are rejected."""
    if isinstance(value, bool):
        raise ValueError(f"Stage target must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as exc:
            raise ValueError(f"Stage target must be an integer, got {value!r}") from exc
    raise ValueError(f"Stage target must be an integer, got {value!r}")


def parse_stages(spec: str | Iterable[Mapping[str, Any]]) -> tuple[Stage, ...]:
    """
    Build stages from ``"15s:100,300s:500,15s:0"`` or a list of mappings.

    Mappings need ``duration`` and ``target`` keys, which is the shape
    used by the YAML run profile.
    """
    stages: list[Stage] = []

    if isinstance(spec, str):
        for chunk in spec.split(","):
            chunk = chunk.strip()
            if not chunk:
                continue
            duration_text, sep, target_text = chunk.rpartition(":")
            if not sep:
                raise ValueError(f"Stage must look like '<duration>:<target>', got {chunk!r}")
            try:
                target = int(target_text)
            except ValueError as exc:
                raise ValueError(f"Non-integer stage target in {chunk!r}") from exc
            stages.append(Stage(duration=parse_duration(duration_text), target=target))
        return tuple(stages)

    for entry in spec:
        try:
            duration = entry["duration"]
            target = entry["target"]
        except (KeyError, TypeError) as exc:
            raise ValueError(
                f"Stage entries need 'duration' and 'target' keys, got {entry!r}"
            ) from exc
        stages.append(Stage(duration=parse_duration(duration), target=_parse_target(target)))
    return tuple(stages)


def total_duration(stages: Sequence[Stage]) -> float:
    """Sum of all stage durations, in seconds."""
    return sum(stage.duration for stage in stages)


def interpolate(
    stages: Sequence[Stage], elapsed: float, start_target: int = 0
) -> float | None:
    """
    Return the (fractional) target concurrency at ``elapsed`` seconds.

    Args:
        stages: Ordered ramp stages.
        elapsed: Seconds since the run started.
        start_target: Concurrency before the first stage begins.

    Returns:
        The linearly interpolated user count, or ``None`` once
        ``elapsed`` has reached the end of the last stage (or when there
        are no stages at all).
    """
    if not stages:
        return None
    if elapsed < 0:
        return float(start_target)

    stage_start = 0.0
    previous_target = start_target
    for stage in stages:
        stage_end = stage_start + stage.duration
        if elapsed < stage_end:
            progress = (elapsed - stage_start) / stage.duration
            return previous_target + (stage.target - previous_target) * progress
        stage_start = stage_end
        previous_target = stage.target

    return None


def target_concurrency(
    stages: Sequence[Stage], elapsed: float, start_target: int = 0
) -> int | None:
    """Whole number of users to run at ``elapsed``, rounded up."""
    value = interpolate(stages, elapsed, start_target)
    if value is None:
        return None
    return max(math.ceil(value), 0)


def current_stage(stages: Sequence[Stage], elapsed: float) -> int | None:
    """Index of the stage that contains ``elapsed``, or ``None`` when outside the run."""
    if elapsed < 0:
        return None
    stage_start = 0.0
    for index, stage in enumerate(stages):
        stage_start += stage.duration
        if elapsed < stage_start:
            return index
    return None


class StagedLoadShape(LoadTestShape):
    """
    Locust shape that follows :attr:`stages` and stops after the last one.

    Subclasses (see :mod:`idgen_load.locustfile`) set ``stages`` and
    ``start_target`` from the run profile.  ``abstract = True`` keeps
    Locust from picking this base class up on its own.
    """

    abstract = True

    stages: tuple[Stage, ...] = ()
    start_target: int = 0

    def spawn_rate_for(self, elapsed: float) -> float:
        """
        Users per second needed to keep up with the current stage's slope.

        Plateaus still report a rate of 1 so Locust can replace users
        that stopped early.
        """
        index = current_stage(self.stages, elapsed)
        if index is None:
            return 1.0
        previous = self.start_target if index == 0 else self.stages[index - 1].target
        stage = self.stages[index]
        slope = abs(stage.target - previous) / stage.duration
        return max(float(math.ceil(slope)), 1.0)

    def tick(self) -> tuple[int, float] | None:
        elapsed = self.get_run_time()
        users = target_concurrency(self.stages, elapsed, self.start_target)
        if users is None:
            return None
        return users, self.spawn_rate_for(elapsed)
