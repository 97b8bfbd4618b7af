from __future__ import annotations

from mavenizer.candidates import Proposal
from mavenizer.coordinates import Component
from mavenizer.patterns import JAR_FILENAME_VERSION_SUFFIX


def analyze(jar_filename: str) -> list[Proposal]:
    """Split ``name-1.2.3[-classifier].jar`` into artifactId and version."""
    detail = f"'{jar_filename}'"
    stem = jar_filename.rsplit(".", 1)[0] if "." in jar_filename else jar_filename

    match = JAR_FILENAME_VERSION_SUFFIX.search(stem)
    if match and match.group("version"):
        return [
            Proposal(Component.ARTIFACT_ID, stem[: match.start()], 6, detail),
            Proposal(Component.VERSION, match.group("version"), 6, detail),
        ]
    return [Proposal(Component.ARTIFACT_ID, stem, 4, detail)]
