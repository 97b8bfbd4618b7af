"""Parsing of ``META-INF/MANIFEST.MF``.

A manifest is a main attribute section followed by per-entry sections, each
starting with a ``Name:`` header. Values longer than one line continue on
lines that begin with a single space.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from mavenizer.exceptions import ManifestFormatError

logger = logging.getLogger(__name__)

MANIFEST_PATH = "META-INF/MANIFEST.MF"

_HEADER_RE = re.compile(r"^(?P<name>[A-Za-z0-9][A-Za-z0-9_\-]*):(?: (?P<value>.*))?$")


@dataclass(frozen=True)
class Manifest:
    main_attributes: dict[str, str] = field(default_factory=dict)
    entries: dict[str, dict[str, str]] = field(default_factory=dict)
    text: str = ""

    def is_empty(self) -> bool:
        return not self.main_attributes and not self.entries

    def sections(self) -> list[dict[str, str]]:
        return [self.main_attributes, *self.entries.values()]


@dataclass(frozen=True)
class ParsedOk:
    manifest: Manifest
    # "stream" when found at the head of the archive, "raw-entry" when re-parsed
    source: str


@dataclass(frozen=True)
class MissingManifest:
    reason: str


ManifestResult = ParsedOk | MissingManifest


def _logical_lines(text: str) -> list[str]:
    lines: list[str] = []
    for physical in text.splitlines():
        if physical.startswith(" ") and lines and lines[-1] != "":
            lines[-1] += physical[1:]
        else:
            lines.append(physical)
    return lines


def parse_manifest(data: bytes, *, strict: bool = True) -> Manifest:
    """Parse manifest bytes.

    In strict mode a malformed header raises ``ManifestFormatError``. In
    lenient mode malformed lines are skipped so that whatever is readable
    survives.
    """
    text = data.decode("utf-8", errors="replace").lstrip("\ufeff")
    main: dict[str, str] = {}
    entries: dict[str, dict[str, str]] = {}
    current = main
    in_main = True
    section_open = True

    for lineno, line in enumerate(_logical_lines(text), start=1):
        if not line.strip():
            # A blank line closes the current section.
            in_main = False
            section_open = False
            continue
        match = _HEADER_RE.match(line)
        if match is None:
            if strict:
                raise ManifestFormatError(
                    f"Invalid manifest header at line {lineno}", context={"line": line[:80]}
                )
            logger.debug("Skipping malformed manifest line %d: %r", lineno, line[:80])
            continue
        name, value = match.group("name"), (match.group("value") or "")
        if not in_main and not section_open:
            if name.lower() != "name":
                if strict:
                    raise ManifestFormatError(
                        f"Manifest section at line {lineno} does not start with 'Name'",
                        context={"line": line[:80]},
                    )
                continue
            current = entries.setdefault(value.strip(), {})
            section_open = True
            continue
        current[name] = value

    return Manifest(main_attributes=main, entries=entries, text=text)


def resolve_manifest(primary: Manifest | None, raw_entry: bytes | None) -> ManifestResult:
    """Pick the manifest found at the archive head, else re-parse the raw entry."""
    if primary is not None and not primary.is_empty():
        return ParsedOk(primary, source="stream")
    if raw_entry is None:
        return MissingManifest(reason="absent")
    fallback = parse_manifest(raw_entry, strict=False)
    if fallback.is_empty():
        return MissingManifest(reason="unparseable")
    return ParsedOk(fallback, source="raw-entry")
