"""
Shared pytest fixtures for mavenizer tests.

Provides:
- Jar builders writing real zip archives into tmp_path
- An in-memory repository client standing in for remote Maven repositories
- Log context isolation between tests
"""

from __future__ import annotations

import io
import sys
import threading
import zipfile
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

import pytest

SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if SRC_ROOT.is_dir():
    sys.path.insert(0, str(SRC_ROOT))

from mavenizer.coordinates import MavenCoordinate  # noqa: E402
from mavenizer.repository import RemoteArtifact, artifact_path  # noqa: E402

DEFAULT_DATE_TIME = (2019, 3, 14, 12, 0, 0)

JarEntries = Mapping[str, bytes] | Iterable[tuple[str, bytes]]


# =============================================================================
# Jar builders
# =============================================================================


def manifest_bytes(attributes: Mapping[str, str]) -> bytes:
    lines = ["Manifest-Version: 1.0"]
    lines.extend(f"{name}: {value}" for name, value in attributes.items())
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")


def jar_bytes(
    entries: JarEntries,
    *,
    date_time: tuple[int, int, int, int, int, int] = DEFAULT_DATE_TIME,
    compression: int = zipfile.ZIP_DEFLATED,
) -> bytes:
    """Build a jar in memory; entries keep the given order."""
    items = list(entries.items()) if isinstance(entries, Mapping) else list(entries)
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=compression) as archive:
        for name, content in items:
            info = zipfile.ZipInfo(name, date_time=date_time)
            info.compress_type = compression
            archive.writestr(info, content)
    return buffer.getvalue()


def mark_encrypted(data: bytes) -> bytes:
    """Set the traditional-encryption flag on every entry of a stored jar."""
    patched = bytearray(data)
    for signature, flag_offset in ((b"PK\x03\x04", 6), (b"PK\x01\x02", 8)):
        start = patched.find(signature)
        while start != -1:
            patched[start + flag_offset] |= 0x01
            start = patched.find(signature, start + 4)
    return bytes(patched)


def class_entries(package_path: str, names: Iterable[str]) -> list[tuple[str, bytes]]:
    return [(f"{package_path}/{name}.class", f"class {package_path}/{name}".encode()) for name in names]


def build_jar(
    path: Path,
    entries: JarEntries,
    *,
    manifest: Mapping[str, str] | None = None,
    **kwargs: Any,
) -> Path:
    """Write a jar to ``path``; a manifest, if given, is stored first as a jar tool would."""
    items = list(entries.items()) if isinstance(entries, Mapping) else list(entries)
    if manifest is not None:
        items = [("META-INF/MANIFEST.MF", manifest_bytes(manifest)), *items]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(jar_bytes(items, **kwargs))
    return path


@pytest.fixture
def jar_factory(tmp_path: Path) -> Callable[..., Path]:
    def _create(name: str, entries: JarEntries, **kwargs: Any) -> Path:
        return build_jar(tmp_path / name, entries, **kwargs)

    return _create


@pytest.fixture
def widget_entries() -> list[tuple[str, bytes]]:
    """Classes of a small library under com/example/widget."""
    return class_entries("com/example/widget", ["Widget", "WidgetFactory", "Gadget", "Gizmo"])


# =============================================================================
# Repository fixtures
# =============================================================================


class FakeRepositoryClient:
    """In-memory repository: coordinate -> jar bytes, pair -> versions (newest first)."""

    def __init__(
        self,
        artifacts: Mapping[MavenCoordinate, bytes] | None = None,
        versions: Mapping[tuple[str, str], list[str]] | None = None,
        *,
        reachable: bool = True,
        base_url: str = "https://repo.example.com/maven2/",
    ) -> None:
        self.artifacts = dict(artifacts or {})
        self.versions = dict(versions or {})
        self.reachable = reachable
        self.base_url = base_url
        self.resolve_calls: list[MavenCoordinate] = []
        self.list_calls: list[tuple[str, str]] = []
        self.probe_calls = 0
        self._lock = threading.Lock()

    def resolve(self, coordinate: MavenCoordinate) -> RemoteArtifact | None:
        with self._lock:
            self.resolve_calls.append(coordinate)
        content = self.artifacts.get(coordinate)
        if content is None:
            return None
        return RemoteArtifact(url=self.base_url + artifact_path(coordinate), content=content)

    def list_versions(self, group_id: str, artifact_id: str) -> list[str]:
        with self._lock:
            self.list_calls.append((group_id, artifact_id))
        return list(self.versions.get((group_id, artifact_id), []))

    def remote_repositories(self) -> list[str]:
        return [self.base_url]

    def probe(self) -> bool:
        self.probe_calls += 1
        return self.reachable


@pytest.fixture
def junit_coordinate() -> MavenCoordinate:
    return MavenCoordinate("junit", "junit", "4.12")


@pytest.fixture
def fake_repository(junit_coordinate: MavenCoordinate) -> FakeRepositoryClient:
    """Reachable repository holding only the connectivity test artifact."""
    junit = jar_bytes(class_entries("junit/framework", ["TestCase", "Assert"]))
    return FakeRepositoryClient({junit_coordinate: junit})
