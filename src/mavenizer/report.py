"""JSON report of the coordinates decided for each jar."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from mavenizer.coordinates import JarIdentity, MavenCoordinate

SCHEMA_VERSION = "1.0"
DATETIME_SUBSTITUTE = "<datetime>"
DATETIME_FORMAT = "%Y-%m-%d-%H-%M-%S"
DEFAULT_REPORT_FILE = f"mavenizer-report-{DATETIME_SUBSTITUTE}.json"


@dataclass(frozen=True)
class JarReport:
    filename: str
    dir: str
    sha256: str
    found_on_remote: bool
    result: MavenCoordinate

    @classmethod
    def for_jar(cls, identity: JarIdentity, coordinate: MavenCoordinate, found_on_remote: bool) -> JarReport:
        return cls(identity.name, identity.directory, identity.hashes.jar_digest, found_on_remote, coordinate)

    def as_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "dir": self.dir,
            "sha256": self.sha256,
            "foundOnRemote": self.found_on_remote,
            "result": {
                "groupId": self.result.group_id,
                "artifactId": self.result.artifact_id,
                "version": self.result.version,
                "classifier": self.result.classifier,
            },
        }


@dataclass
class AnalysisReport:
    online_check_enabled: bool
    remote_repos: list[str] = field(default_factory=list)
    jar_results: list[JarReport] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "schemaVersion": SCHEMA_VERSION,
            "analysisInfo": {
                "onlineCheckEnabled": self.online_check_enabled,
                "remoteRepos": list(self.remote_repos),
            },
            "jarResults": [jar.as_dict() for jar in self.jar_results],
        }


def resolve_report_path(template: str, now: datetime | None = None) -> Path:
    stamp = (now or datetime.now()).strftime(DATETIME_FORMAT)
    return Path(template.replace(DATETIME_SUBSTITUTE, stamp))


def write_json(path: Path, obj: dict[str, Any], *, indent: int = 2) -> None:
    """Write dict to JSON file atomically."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        f.write(json.dumps(obj, indent=indent, ensure_ascii=False) + "\n")
        f.flush()
        os.fsync(f.fileno())
    tmp_path.replace(path)
