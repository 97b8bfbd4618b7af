"""Candidates from ``META-INF/maven/<groupId>/<artifactId>/pom.{xml,properties}``.

Values come from the entry path and from the file contents. When every source
agrees and none is missing, each component gets one high-confidence proposal;
otherwise every value is proposed once per source at low confidence.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from collections.abc import Sequence
from pathlib import PurePosixPath

from mavenizer.candidates import Proposal
from mavenizer.coordinates import Component
from mavenizer.ingest import FileBuffer

logger = logging.getLogger(__name__)

POM_XML = "pom.xml"
POM_PROPERTIES = "pom.properties"
MAVEN_META_DIR = PurePosixPath("META-INF/maven")

AGREED_SCORE = 10
DISAGREED_SCORE = 2
AGREED_DETAIL = f"{POM_XML} / {POM_PROPERTIES}"

_PROPERTY_RE = re.compile(r"^(?P<key>[^=:\s]+)\s*(?:[=:]|\s)\s*(?P<value>.*)$")

# value (None when a source could not provide it) -> sources
FoundValues = dict[Component, dict[str | None, list[str]]]


def parse_properties(content: bytes) -> dict[str, str]:
    """Minimal ``.properties`` reader: ``key=value``, ``key: value`` and ``#``/``!`` comments."""
    result: dict[str, str] = {}
    for raw_line in content.decode("latin-1").splitlines():
        line = raw_line.strip()
        if not line or line.startswith(("#", "!")):
            continue
        match = _PROPERTY_RE.match(line)
        if match:
            result[match.group("key")] = match.group("value").strip()
    return result


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element | None, name: str) -> str | None:
    if element is None:
        return None
    for child in element:
        if _local_name(child.tag) == name:
            text = (child.text or "").strip()
            return text or None
    return None


def _child(element: ET.Element, name: str) -> ET.Element | None:
    for child in element:
        if _local_name(child.tag) == name:
            return child
    return None


def parse_pom_xml(content: bytes, path: PurePosixPath) -> dict[Component, str | None]:
    """Read groupId/artifactId/version, inheriting groupId and version from ``<parent>``.

    A document that is not well-formed yields no values; the condition is
    logged, not raised.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        logger.warning("Ignoring malformed %s: %s", path, exc)
        return {component: None for component in Component}

    parent = _child(root, "parent")
    group_id = _child_text(root, "groupId") or _child_text(parent, "groupId")
    version = _child_text(root, "version") or _child_text(parent, "version")
    return {
        Component.GROUP_ID: group_id,
        Component.ARTIFACT_ID: _child_text(root, "artifactId"),
        Component.VERSION: version,
    }


def find_values(pom_files: Sequence[FileBuffer]) -> FoundValues:
    found: FoundValues = {component: {} for component in Component}

    def record(component: Component, value: str | None, source: str) -> None:
        found[component].setdefault(value, []).append(source)

    correct_path = True
    for pom_file in pom_files:
        filename = pom_file.path.name.lower()
        if filename not in (POM_XML, POM_PROPERTIES):
            continue

        # Once one file sits outside META-INF/maven/<g>/<a>/, path values are no longer trusted.
        correct_path = correct_path and pom_file.path.parent.parent.parent == MAVEN_META_DIR
        path_source = f"Path: '{pom_file.path}'"
        record(Component.GROUP_ID, pom_file.path.parent.parent.name if correct_path else None, path_source)
        record(Component.ARTIFACT_ID, pom_file.path.parent.name if correct_path else None, path_source)

        file_source = f"File-Content: '{filename}'"
        if filename == POM_XML:
            values = parse_pom_xml(pom_file.content, pom_file.path)
        else:
            properties = parse_properties(pom_file.content)
            values = {component: properties.get(component.value) for component in Component}
        for component in Component:
            record(component, values[component], file_source)
    return found


def analyze(pom_files: Sequence[FileBuffer]) -> list[Proposal]:
    if not pom_files:
        return []

    proposals: list[Proposal] = []
    for component, values in find_values(pom_files).items():
        agreed = len(values) == 1 and None not in values
        if agreed:
            (value,) = values
            proposals.append(Proposal(component, value, AGREED_SCORE, AGREED_DETAIL))
            continue
        for value, sources in values.items():
            # Missing values count against agreement but are never proposed.
            if value is None:
                continue
            proposals.extend(Proposal(component, value, DISAGREED_SCORE, source) for source in sources)
    return proposals
