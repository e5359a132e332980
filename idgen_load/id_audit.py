"""
Offline cross-VU duplicate analysis of logged IDs.

During a run each virtual user only compares IDs against its own
history, so two users receiving the same ID goes unnoticed.  Every
successful iteration logs a line of the form::

    [VU: 12, Iter: 40] ID: 7203419785641984

:func:`audit_lines` scans such log output after the run (from any
number of files, in any log format that keeps the message intact) and
reports every ID that was handed out more than once, with where each
copy went.
"""

from __future__ import annotations

import re
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

ID_LINE = re.compile(r"\[VU: (?P<vu>\d+), Iter: (?P<iteration>\d+)\] ID: (?P<id>\S+)")


@dataclass(frozen=True)
class Sighting:
    vu_id: int
    iteration: int


@dataclass(frozen=True)
class DuplicateId:
    """One ID that was issued more than once."""

    value: str
    sightings: tuple[Sighting, ...]

    @property
    def cross_vu(self) -> bool:
        """True when at least two different virtual users received this ID."""
        return len({sighting.vu_id for sighting in self.sightings}) > 1


@dataclass(frozen=True)
class AuditReport:
    ids_seen: int
    unique_ids: int
    duplicates: tuple[DuplicateId, ...]

    @property
    def cross_vu_duplicates(self) -> tuple[DuplicateId, ...]:
        return tuple(dup for dup in self.duplicates if dup.cross_vu)

    @property
    def clean(self) -> bool:
        return not self.duplicates


def audit_lines(lines: Iterable[str]) -> AuditReport:
    """Collect ID sightings from log lines and find repeats."""
    sightings: dict[str, list[Sighting]] = defaultdict(list)
    total = 0
    for line in lines:
        match = ID_LINE.search(line)
        if match is None:
            continue
        total += 1
        sightings[match.group("id")].append(
            Sighting(vu_id=int(match.group("vu")), iteration=int(match.group("iteration")))
        )

    duplicates = tuple(
        DuplicateId(value=value, sightings=tuple(seen))
        for value, seen in sorted(sightings.items())
        if len(seen) > 1
    )
    return AuditReport(ids_seen=total, unique_ids=len(sightings), duplicates=duplicates)


def audit_files(paths: Iterable[Path]) -> AuditReport:
    """Run :func:`audit_lines` over the concatenation of ``paths``."""

    def _lines() -> Iterable[str]:
        for path in paths:
            with path.open("r", encoding="utf-8", errors="replace") as handle:
                yield from handle

    return audit_lines(_lines())


def format_audit(report: AuditReport, limit: int = 20) -> str:
    """Human-readable summary, listing at most ``limit`` duplicate IDs."""
    lines = [
        "ID Audit",
        "-" * 60,
        f"IDs logged:          {report.ids_seen}",
        f"Unique IDs:          {report.unique_ids}",
        f"Duplicated IDs:      {len(report.duplicates)}",
        f"  across VUs:        {len(report.cross_vu_duplicates)}",
        "-" * 60,
    ]
    for duplicate in report.duplicates[:limit]:
        where = ", ".join(f"VU {s.vu_id}/iter {s.iteration}" for s in duplicate.sightings)
        lines.append(f"{duplicate.value}: {where}")
    if len(report.duplicates) > limit:
        lines.append(f"... {len(report.duplicates) - limit} more")
    lines.append(f"Overall: {'PASS' if report.clean else 'FAIL'}")
    return "\n".join(lines)
