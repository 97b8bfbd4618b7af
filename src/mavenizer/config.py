"""Tunable thresholds and limits of an analysis run."""

from __future__ import annotations

import dataclasses
import json
from functools import cache
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft7Validator, FormatChecker

from mavenizer.coordinates import Component, MavenCoordinate
from mavenizer.exceptions import ConfigValidationError

MAVEN_CENTRAL_URL = "https://repo1.maven.org/maven2/"
SETTINGS_SCHEMA = "analysis_settings"
MAX_REPORTED_ERRORS = 10


@dataclasses.dataclass(frozen=True)
class AnalysisSettings:
    # candidates below this score are never checked online
    online_search_threshold: int = 1
    group_id_candidates: int = 2
    artifact_id_candidates: int = 2
    version_candidates: int = 2
    # version discovery runs when the best version scores at most this ...
    version_search_threshold: int = 1
    # ... and no version candidate reaches this
    version_skip_search_threshold: int = 3
    proposal_threshold: int = 4
    test_coordinate: str = "junit:junit:4.12"
    central_url: str = MAVEN_CENTRAL_URL
    verification_workers: int = 4
    request_timeout_s: float = 30.0
    retry_max_attempts: int = 3
    settings_shutdown_timeout_s: float = 5.0

    def candidates_per_component(self, component: Component) -> int:
        return {
            Component.GROUP_ID: self.group_id_candidates,
            Component.ARTIFACT_ID: self.artifact_id_candidates,
            Component.VERSION: self.version_candidates,
        }[component]

    def test_artifact(self) -> MavenCoordinate:
        return parse_coordinate(self.test_coordinate)


def parse_coordinate(text: str) -> MavenCoordinate:
    """Parse ``groupId:artifactId[:version[:classifier]]``."""
    parts = text.strip().split(":")
    if len(parts) < 2 or len(parts) > 4 or not all(parts):
        raise ConfigValidationError(
            f"Invalid Maven coordinate: {text!r}", context={"coordinate": text}
        )
    group_id, artifact_id, *rest = parts
    version = rest[0] if rest else None
    classifier = rest[1] if len(rest) > 1 else None
    return MavenCoordinate(group_id, artifact_id, version, classifier)


@cache
def load_schema(schema_name: str) -> dict[str, Any]:
    schema_path = resources.files("mavenizer").joinpath("schemas").joinpath(f"{schema_name}.schema.json")
    return json.loads(schema_path.read_text(encoding="utf-8"))


def validate_settings(data: Any, *, path: Path, schema_name: str = SETTINGS_SCHEMA) -> None:
    """Validate a parsed settings document; all problems are reported at once."""
    validator = Draft7Validator(load_schema(schema_name), format_checker=FormatChecker())
    errors = sorted(validator.iter_errors(data), key=lambda exc: list(exc.path))
    if not errors:
        return
    lines = [f"Invalid settings file {path}:"]
    details: list[dict[str, str]] = []
    for error in errors[:MAX_REPORTED_ERRORS]:
        location = ".".join(str(p) for p in error.path) if error.path else "<root>"
        lines.append(f"- {location}: {error.message}")
        details.append({"path": location, "message": error.message})
    if len(errors) > MAX_REPORTED_ERRORS:
        lines.append(f"... and {len(errors) - MAX_REPORTED_ERRORS} more errors.")
    raise ConfigValidationError(
        "\n".join(lines),
        context={
            "path": str(path),
            "schema": schema_name,
            "errors": details,
            "truncated": len(errors) > MAX_REPORTED_ERRORS,
        },
    )


def settings_from_mapping(data: dict[str, Any]) -> AnalysisSettings:
    float_fields = {f.name for f in dataclasses.fields(AnalysisSettings) if f.type == "float"}
    values = {name: float(value) if name in float_fields else value for name, value in data.items()}
    return AnalysisSettings(**values)


def load_settings(path: Path | None) -> AnalysisSettings:
    """Load settings from a YAML file; ``None`` yields the defaults."""
    if path is None:
        return AnalysisSettings()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigValidationError(
            f"Cannot read settings file {path}: {exc}", context={"path": str(path)}
        ) from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(
            f"YAML parse error in {path}: {exc}",
            context={"path": str(path), "error": str(exc)},
        ) from exc
    if data is None:
        data = {}
    validate_settings(data, path=path)
    return settings_from_mapping(data)
