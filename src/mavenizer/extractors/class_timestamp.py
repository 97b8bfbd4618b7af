from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from datetime import date, timezone

from mavenizer.candidates import Proposal
from mavenizer.coordinates import Component
from mavenizer.ingest import ClassEntry

MIN_RATIO_PERCENT = 60


def analyze(classes: Sequence[ClassEntry]) -> list[Proposal]:
    """Propose the most common class build day as a ``yyyy.MM.dd`` version.

    Scores 1 only when that day covers more than 60% of timestamped classes;
    otherwise the evidence is kept at score 0.
    """
    days: Counter[date] = Counter(
        entry.timestamp.astimezone(timezone.utc).date()
        for entry in classes
        if entry.timestamp is not None
    )
    if not days:
        return []
    total = sum(days.values())
    # Most frequent day; ties go to the earliest day.
    day, count = min(days.items(), key=lambda item: (-item[1], item[0]))
    if count <= 1:
        return []

    ratio = count * 100 // total
    detail = f"{ratio:>3}% of classes have created/modified date: {day:%Y-%m-%d}"
    score = 1 if ratio > MIN_RATIO_PERCENT else 0
    return [Proposal(Component.VERSION, f"{day:%Y.%m.%d}", score, detail)]
