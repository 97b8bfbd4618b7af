"""Candidates deduced from the merged output of the other extractors."""

from __future__ import annotations

from mavenizer.candidates import CandidateSet, Proposal
from mavenizer.coordinates import Component

APACHE_COMMONS_PACKAGE = "org.apache.commons"
APACHE_COMMONS_ARTIFACT_PREFIX = "commons-"
MIN_EVIDENCE = 4
DERIVED_SCORE = 5


def apache_commons_rule(candidates: CandidateSet) -> list[Proposal]:
    """Apache Commons jars mostly use groupId == artifactId (``commons-io:commons-io``)."""
    package_score = sum(
        c.score_sum for c in candidates.group_ids if c.value.startswith(APACHE_COMMONS_PACKAGE)
    )
    if package_score < MIN_EVIDENCE:
        return []
    for artifact in candidates.artifact_ids:
        if artifact.value.startswith(APACHE_COMMONS_ARTIFACT_PREFIX) and artifact.score_sum >= MIN_EVIDENCE:
            detail = "Suspecting 'Apache Commons' jar - Rule: groupId equals artifactId"
            return [Proposal(Component.GROUP_ID, artifact.value, DERIVED_SCORE, detail)]
    return []


RULES = (apache_commons_rule,)


def analyze(candidates: CandidateSet) -> list[Proposal]:
    proposals: list[Proposal] = []
    for rule in RULES:
        proposals.extend(rule(candidates))
    return proposals
