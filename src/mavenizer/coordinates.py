"""Value types shared by the extractors, the verifier and the selection step."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from collections.abc import Mapping


class Component(Enum):
    GROUP_ID = "groupId"
    ARTIFACT_ID = "artifactId"
    VERSION = "version"

    @property
    def display_name(self) -> str:
        return self.value


@dataclass(frozen=True)
class MavenCoordinate:
    """A Maven coordinate; ``version is None`` marks a versionless pair."""

    group_id: str
    artifact_id: str
    version: str | None = None
    classifier: str | None = None

    def with_version(self, version: str | None) -> MavenCoordinate:
        return MavenCoordinate(self.group_id, self.artifact_id, version, self.classifier)

    def pair(self) -> MavenCoordinate:
        return MavenCoordinate(self.group_id, self.artifact_id)

    def get(self, component: Component) -> str | None:
        if component is Component.GROUP_ID:
            return self.group_id
        if component is Component.ARTIFACT_ID:
            return self.artifact_id
        return self.version

    def __str__(self) -> str:
        parts = [self.group_id, self.artifact_id]
        if self.version is not None:
            parts.append(self.version)
        if self.classifier:
            parts.append(self.classifier)
        return ":".join(parts)


class MatchClassification(Enum):
    EXACT_SHA = "exact-sha"
    EXACT_CLASS_DIGESTS = "exact-class-digests"
    # Reserved: nothing produces this yet.
    SUPERSET_CLASSNAMES = "superset-classnames"
    NO_MATCH = "no-match"
    NOT_FOUND = "not-found"

    @property
    def is_considered_identical(self) -> bool:
        return _IDENTICAL[self]


_IDENTICAL = {
    MatchClassification.EXACT_SHA: True,
    MatchClassification.EXACT_CLASS_DIGESTS: True,
    MatchClassification.SUPERSET_CLASSNAMES: False,
    MatchClassification.NO_MATCH: False,
    MatchClassification.NOT_FOUND: False,
}


@dataclass(frozen=True)
class UidCheck:
    coordinate: MavenCoordinate
    classification: MatchClassification
    remote_url: str | None = None

    @property
    def is_identical(self) -> bool:
        return self.classification.is_considered_identical


@dataclass(frozen=True)
class JarHashes:
    """Whole-jar digest (base64 SHA-256) plus one digest per ``.class`` entry path."""

    jar_digest: str
    class_digests: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "class_digests", MappingProxyType(dict(self.class_digests)))


@dataclass(frozen=True)
class JarIdentity:
    name: str
    directory: str
    hashes: JarHashes
