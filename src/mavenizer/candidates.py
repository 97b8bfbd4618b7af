"""Evidence accumulation and ranking of coordinate candidates."""

from __future__ import annotations

import bisect
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum

from mavenizer.coordinates import Component


class ExtractorKind(Enum):
    MANIFEST = "Manifest"
    JAR_FILENAME = "Jar-Filename"
    POM = "Pom"
    CLASS_FILEPATH = "Class-Filepath"
    CLASS_TIMESTAMP = "Class-Timestamp"
    POST = "Post"

    @property
    def display_name(self) -> str:
        return self.value


@dataclass(frozen=True)
class Proposal:
    """One value proposed by an extractor for one coordinate component."""

    component: Component
    value: str
    score: int
    detail: str


@dataclass(frozen=True)
class EvidenceItem:
    kind: ExtractorKind
    score: int
    detail: str


@dataclass(frozen=True)
class ValueCandidate:
    """All evidence for one value of one component.

    ``score_sum`` is carried forward on every ``with_evidence`` call and is
    the only place the total is computed.
    """

    value: str
    evidence: tuple[EvidenceItem, ...] = ()
    score_sum: int = 0

    def with_evidence(self, item: EvidenceItem) -> ValueCandidate:
        # Descending by score; equal scores keep arrival order.
        keys = [-existing.score for existing in self.evidence]
        index = bisect.bisect_right(keys, -item.score)
        evidence = self.evidence[:index] + (item,) + self.evidence[index:]
        return ValueCandidate(self.value, evidence, self.score_sum + item.score)


def rank_key(candidate: ValueCandidate) -> tuple[int, str]:
    return (-candidate.score_sum, candidate.value)


@dataclass(frozen=True)
class CandidateSet:
    """Ranked candidates per component: ``score_sum`` descending, then value ascending."""

    group_ids: tuple[ValueCandidate, ...] = ()
    artifact_ids: tuple[ValueCandidate, ...] = ()
    versions: tuple[ValueCandidate, ...] = ()

    def get(self, component: Component) -> tuple[ValueCandidate, ...]:
        if component is Component.GROUP_ID:
            return self.group_ids
        if component is Component.ARTIFACT_ID:
            return self.artifact_ids
        return self.versions

    def top(self, component: Component, limit: int, min_score: int) -> list[ValueCandidate]:
        return [c for c in self.get(component) if c.score_sum >= min_score][:limit]

    def __iter__(self) -> Iterator[tuple[Component, tuple[ValueCandidate, ...]]]:
        for component in Component:
            yield component, self.get(component)


@dataclass
class CandidateAggregator:
    """Merges extractor proposals into per-component ``ValueCandidate`` maps."""

    _pools: dict[Component, dict[str, ValueCandidate]] = field(
        default_factory=lambda: {component: {} for component in Component}
    )

    def add(self, kind: ExtractorKind, proposals: Iterable[Proposal]) -> None:
        for proposal in proposals:
            pool = self._pools[proposal.component]
            current = pool.get(proposal.value) or ValueCandidate(proposal.value)
            pool[proposal.value] = current.with_evidence(
                EvidenceItem(kind, proposal.score, proposal.detail)
            )

    def candidate_set(self) -> CandidateSet:
        ranked = {
            component: tuple(sorted(pool.values(), key=rank_key))
            for component, pool in self._pools.items()
        }
        return CandidateSet(
            group_ids=ranked[Component.GROUP_ID],
            artifact_ids=ranked[Component.ARTIFACT_ID],
            versions=ranked[Component.VERSION],
        )
