"""Regular expressions for package names, artifact ids and versions found in jars."""

from __future__ import annotations

import re

from mavenizer.coordinates import Component

CLASS = r"[A-Z]\w*"
SUBPACKAGE = r"[a-z_][a-z0-9_]*"
ARTIFACT_ID_STRICT = r"[a-z_][a-z0-9_\-]*"
# log4j-1.2-api is a real artifactId, so periods and uppercase letters are allowed.
ARTIFACT_ID_LIKE = r"[a-zA-Z_][a-zA-Z0-9_\-\.]*"
PACKAGE = rf"({SUBPACKAGE}\.)*({SUBPACKAGE})"
# Either a package or a hyphenated single token such as "xml-apis".
GROUP_ID_LIKE = rf"({PACKAGE})|([a-z_][a-z0-9_\-]*)"
PACKAGE_2_OR_MORE = rf"({SUBPACKAGE}\.)+({SUBPACKAGE})"
CLASSIFIER = r"([a-zA-Z0-9]+)"
# "3.1.SONATYPE" is a published version.
VERSION = r"[0-9]+(\.[0-9]+)*((\.[A-Z]+)|(\-[A-Z]+))?"
# "2.4.0-b180830.0438" and "2.1.4-hudson-build-463" are published versions.
CLASSIFIERS = rf"({CLASSIFIER})([\-\.]{CLASSIFIER}){{0,2}}"

PACKAGE_WITH_OPTIONAL_CLASS = re.compile(
    rf"^(?P<package>{PACKAGE})(\.(?P<cls>{CLASS}))?$", re.ASCII
)
PACKAGE_2_OR_MORE_WITH_OPTIONAL_CLASS = re.compile(
    rf"^(?P<package>{PACKAGE_2_OR_MORE})(\.(?P<cls>{CLASS}))?$", re.ASCII
)
ARTIFACT_ID_STRICT_RE = re.compile(rf"^(?P<artifactId>{ARTIFACT_ID_STRICT})$", re.ASCII)
ARTIFACT_ID_LIKE_RE = re.compile(rf"^(?P<artifactId>{ARTIFACT_ID_LIKE})$", re.ASCII)
OPTIONAL_PACKAGE_WITH_ARTIFACT_ID_LIKE_AS_LEAF = re.compile(
    rf"^(?P<package>({SUBPACKAGE}\.)*)(?P<artifactId>{ARTIFACT_ID_LIKE})$", re.ASCII
)
JAR_FILENAME_VERSION_SUFFIX = re.compile(
    rf"\-(?P<version>{VERSION})([\-\.]{CLASSIFIERS})?$", re.ASCII
)
VERSION_WITH_OPTIONAL_CLASSIFIERS = re.compile(
    rf"^(?P<version>{VERSION})([\-\.]{CLASSIFIERS})?$", re.ASCII
)
GROUP_ID_RE = re.compile(rf"^(?P<groupId>{GROUP_ID_LIKE})$", re.ASCII)

_USER_INPUT_PATTERNS = {
    Component.GROUP_ID: GROUP_ID_RE,
    Component.ARTIFACT_ID: ARTIFACT_ID_LIKE_RE,
    Component.VERSION: VERSION_WITH_OPTIONAL_CLASSIFIERS,
}


def user_input_pattern(component: Component) -> re.Pattern[str]:
    return _USER_INPUT_PATTERNS[component]


def package_candidates(package: str) -> list[str]:
    """Return the first 2, 3 and 4 segments of ``package`` (none if it has fewer than 2)."""
    parts = package.split(".")
    if len(parts) < 2:
        return []
    return [".".join(parts[:depth]) for depth in range(2, min(len(parts), 4) + 1)]


def package_leaf(package: str) -> str:
    return package.split(".")[-1]
