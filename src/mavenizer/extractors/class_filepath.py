"""GroupId candidates from the folders that hold most of a jar's classes."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import PurePosixPath

from mavenizer.candidates import Proposal
from mavenizer.coordinates import Component
from mavenizer.ingest import ClassEntry
from mavenizer.patterns import PACKAGE_WITH_OPTIONAL_CLASS

MIN_COUNT_RATIO = 0.6
MAX_PATH_DEPTH = 4
VERSIONED_PREFIX = ("META-INF", "versions")


@dataclass(frozen=True)
class FolderStats:
    parts: tuple[str, ...]
    deep_class_count: int


def folder_stats(classes: Sequence[ClassEntry]) -> tuple[list[FolderStats], int]:
    """Recursive class count for every folder, sorted by count descending.

    Returns the stats (root excluded) and the total number of counted classes.
    Classes in the jar root and in multi-release ``META-INF/versions`` are ignored.
    """
    deep_counts: Counter[tuple[str, ...]] = Counter()
    total = 0
    for entry in classes:
        folder = entry.path.parent.parts
        if not folder or folder[: len(VERSIONED_PREFIX)] == VERSIONED_PREFIX:
            continue
        total += 1
        for depth in range(1, len(folder) + 1):
            deep_counts[folder[:depth]] += 1
    stats = [FolderStats(parts, count) for parts, count in deep_counts.items()]
    stats.sort(key=lambda s: s.deep_class_count, reverse=True)
    return stats, total


def analyze(classes: Sequence[ClassEntry]) -> list[Proposal]:
    stats, total = folder_stats(classes)
    if total == 0:
        return []

    frequent = [s for s in stats if s.deep_class_count / total >= MIN_COUNT_RATIO]
    # A single dominant folder without dominant subfolders may be a one-segment groupId.
    min_depth = 1 if len(frequent) <= 1 else 2

    proposals: list[Proposal] = []
    for folder in frequent:
        if not min_depth <= len(folder.parts) <= MAX_PATH_DEPTH:
            continue
        ratio = folder.deep_class_count / total
        package = ".".join(folder.parts)
        match = PACKAGE_WITH_OPTIONAL_CLASS.search(package)
        if not match:
            continue
        path = PurePosixPath(*folder.parts)
        detail = f"Path contains {int(ratio * 100):>3}% of classes: '{path}'"
        proposals.append(Proposal(Component.GROUP_ID, match.group("package"), int(ratio * 2 + 0.5), detail))
    return proposals
