"""Candidates from manifest attributes.

Attributes named ``*Version`` yield versions. A fixed set of identity
attributes yields groupIds (package prefixes) and artifactIds (package
leaves or literal artifact ids), each with its own confidence pair.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping

from mavenizer.candidates import Proposal
from mavenizer.coordinates import Component
from mavenizer.manifest import Manifest
from mavenizer.patterns import (
    ARTIFACT_ID_STRICT_RE,
    OPTIONAL_PACKAGE_WITH_ARTIFACT_ID_LIKE_AS_LEAF,
    PACKAGE_2_OR_MORE_WITH_OPTIONAL_CLASS,
    VERSION_WITH_OPTIONAL_CLASSIFIERS,
    package_candidates,
    package_leaf,
)

ScoredValues = list[tuple[str, int]]

VERSION_ATTRIBUTE_SUFFIX = "Version"
VERSION_ATTRIBUTE_EXCLUDES = frozenset(
    {"Ant-Version", "Manifest-Version", "Bundle-ManifestVersion", "Archiver-Version"}
)
# Often lacks the minor version and is rarely the only version attribute.
VERSION_ATTRIBUTE_LOW_CONFIDENCE = frozenset({"Specification-Version"})


def package_with_optional_class(value: str, exact: int, sub: int) -> ScoredValues:
    """``foo.bar.baz`` -> ``foo.bar`` and ``foo.bar.baz``; exact match scores ``exact``."""
    match = PACKAGE_2_OR_MORE_WITH_OPTIONAL_CLASS.search(value)
    if not match:
        return []
    return [
        (candidate, exact if candidate == value else sub)
        for candidate in package_candidates(match.group("package"))
    ]


def package_leaf_only(value: str, score: int) -> ScoredValues:
    match = PACKAGE_2_OR_MORE_WITH_OPTIONAL_CLASS.search(value)
    if not match:
        return []
    return [(package_leaf(match.group("package")), score)]


def artifact_id_or_package_leaf(value: str, literal: int, leaf: int) -> ScoredValues:
    match = ARTIFACT_ID_STRICT_RE.search(value)
    if match:
        return [(match.group("artifactId"), literal)]
    return package_leaf_only(value, leaf)


def artifact_like_leaf(value: str, score: int) -> ScoredValues:
    """``foo.bar-baz`` -> ``bar-baz``; the leaf may contain hyphens and periods."""
    match = OPTIONAL_PACKAGE_WITH_ARTIFACT_ID_LIKE_AS_LEAF.search(value)
    if not match:
        return []
    return [(match.group("artifactId"), score)]


Extractor = Callable[[str], ScoredValues]

GROUP_ID_EXTRACTORS: dict[str, Extractor] = {
    "Extension-Name": lambda v: package_with_optional_class(v, 4, 2),
    "Implementation-Title": lambda v: package_with_optional_class(v, 4, 2),
    "Implementation-Vendor-Id": lambda v: package_with_optional_class(v, 6, 4),
    "Automatic-Module-Name": lambda v: package_with_optional_class(v, 2, 4),
    "Bundle-SymbolicName": lambda v: package_with_optional_class(v, 2, 4),
    "Main-Class": lambda v: package_with_optional_class(v, 2, 2),
}

ARTIFACT_ID_EXTRACTORS: dict[str, Extractor] = {
    "Extension-Name": lambda v: artifact_id_or_package_leaf(v, 8, 2),
    "Implementation-Title": lambda v: artifact_id_or_package_leaf(v, 4, 2),
    "Implementation-Vendor-Id": lambda v: package_leaf_only(v, 1),
    "Automatic-Module-Name": lambda v: package_leaf_only(v, 4),
    "Bundle-SymbolicName": lambda v: artifact_like_leaf(v, 2),
}


def _version_proposals(name: str, value: str) -> list[Proposal]:
    match = VERSION_WITH_OPTIONAL_CLASSIFIERS.search(value)
    if not match or match.group("version") is None:
        return []
    version = match.group("version")
    has_classifiers = version != value
    penalty = 1 if name in VERSION_ATTRIBUTE_LOW_CONFIDENCE else 0
    detail = f"{name}: '{value}'"

    proposals = [Proposal(Component.VERSION, version, (1 if has_classifiers else 3) - penalty, detail)]
    if has_classifiers:
        proposals.append(Proposal(Component.VERSION, value, 1 - penalty, detail))
    return proposals


def _analyze_section(attributes: Mapping[str, str]) -> list[Proposal]:
    proposals: list[Proposal] = []
    for name, raw_value in attributes.items():
        value = raw_value.strip()
        if name.endswith(VERSION_ATTRIBUTE_SUFFIX) and name not in VERSION_ATTRIBUTE_EXCLUDES:
            proposals.extend(_version_proposals(name, value))
            continue
        detail = f"{name}: '{value}'"
        for component, extractors in (
            (Component.GROUP_ID, GROUP_ID_EXTRACTORS),
            (Component.ARTIFACT_ID, ARTIFACT_ID_EXTRACTORS),
        ):
            extractor = extractors.get(name)
            if extractor is None:
                continue
            proposals.extend(Proposal(component, v, score, detail) for v, score in extractor(value))
    return proposals


def analyze(manifest: Manifest) -> list[Proposal]:
    """Scan the main section and every per-entry section the same way."""
    proposals: list[Proposal] = []
    for section in manifest.sections():
        proposals.extend(_analyze_section(section))
    return proposals
