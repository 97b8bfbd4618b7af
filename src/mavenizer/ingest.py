"""Single pass over a jar: collect extractor inputs and content digests.

Digests cover decompressed entry bytes, so two jars with identical content
but different compression settings hash the same. Digests are base64
encoded SHA-256.
"""

from __future__ import annotations

import base64
import hashlib
import io
import logging
import struct
import zipfile
import zlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path, PurePosixPath

from mavenizer.coordinates import JarHashes, JarIdentity
from mavenizer.exceptions import JarReadError, ManifestFormatError
from mavenizer.manifest import (
    MANIFEST_PATH,
    Manifest,
    ManifestResult,
    ParsedOk,
    parse_manifest,
    resolve_manifest,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
POM_FILENAMES = ("pom.xml", "pom.properties")

_EXTENDED_TIMESTAMP_TAG = 0x5455
_NTFS_TAG = 0x000A
_FILETIME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class ClassEntry:
    path: PurePosixPath
    # Creation time when the archive records one, else modification time.
    timestamp: datetime | None


@dataclass(frozen=True)
class FileBuffer:
    path: PurePosixPath
    content: bytes


@dataclass(frozen=True)
class JarContents:
    identity: JarIdentity
    manifest: ManifestResult
    classes: list[ClassEntry] = field(default_factory=list)
    pom_files: list[FileBuffer] = field(default_factory=list)


def b64_digest(digest: hashlib._Hash) -> str:
    return base64.b64encode(digest.digest()).decode("ascii")


def _extra_fields(extra: bytes) -> dict[int, bytes]:
    fields: dict[int, bytes] = {}
    offset = 0
    while offset + 4 <= len(extra):
        tag, size = struct.unpack_from("<HH", extra, offset)
        fields[tag] = extra[offset + 4 : offset + 4 + size]
        offset += 4 + size
    return fields


def _filetime(value: int) -> datetime | None:
    try:
        return _FILETIME_EPOCH + timedelta(microseconds=value // 10)
    except OverflowError:
        return None


def _unix_time(value: int) -> datetime | None:
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _dos_time(info: zipfile.ZipInfo) -> datetime | None:
    try:
        return datetime(*info.date_time, tzinfo=timezone.utc)
    except ValueError:
        return None


def entry_timestamp(info: zipfile.ZipInfo) -> datetime | None:
    """Best available timestamp of an entry in UTC.

    Order: NTFS creation time, extended-timestamp modification time, NTFS
    modification time, then the DOS date/time field (read as UTC). A field
    holding an unrepresentable time is skipped.
    """
    fields = _extra_fields(info.extra)
    ntfs = fields.get(_NTFS_TAG)
    ntfs_times: tuple[int, int, int] | None = None
    if ntfs and len(ntfs) >= 32:
        tag, size = struct.unpack_from("<HH", ntfs, 4)
        if tag == 1 and size >= 24:
            ntfs_times = struct.unpack_from("<QQQ", ntfs, 8)
    found: list[datetime | None] = []
    if ntfs_times and ntfs_times[2]:
        found.append(_filetime(ntfs_times[2]))
    ext = fields.get(_EXTENDED_TIMESTAMP_TAG)
    if ext and len(ext) >= 5 and ext[0] & 0x01:
        (mtime,) = struct.unpack_from("<i", ext, 1)
        found.append(_unix_time(mtime))
    if ntfs_times and ntfs_times[0]:
        found.append(_filetime(ntfs_times[0]))
    found.append(_dos_time(info))
    return next((ts for ts in found if ts is not None), None)


class _JarWalker:
    """Visits every entry once, feeding the whole-jar and per-class digests."""

    def __init__(self, *, collect: bool) -> None:
        self.collect = collect
        self.jar_digest = hashlib.sha256()
        self.class_digests: dict[str, str] = {}
        self.classes: list[ClassEntry] = []
        self.pom_files: list[FileBuffer] = []
        self.primary_manifest: Manifest | None = None
        self.raw_manifest: bytes | None = None

    def walk(self, archive: zipfile.ZipFile) -> None:
        for position, info in enumerate(archive.infolist()):
            if info.is_dir():
                continue
            self._visit(archive, info, position)

    def _visit(self, archive: zipfile.ZipFile, info: zipfile.ZipInfo, position: int) -> None:
        name = info.filename
        is_class = name.lower().endswith(".class")
        filename = name.rsplit("/", 1)[-1].lower()
        keep = self.collect and (filename in POM_FILENAMES or name == MANIFEST_PATH)
        class_digest = hashlib.sha256() if is_class else None
        buffer = io.BytesIO() if keep else None

        with archive.open(info) as stream:
            for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
                self.jar_digest.update(chunk)
                if class_digest is not None:
                    class_digest.update(chunk)
                if buffer is not None:
                    buffer.write(chunk)

        if class_digest is not None:
            self.class_digests[name] = b64_digest(class_digest)
        if not self.collect:
            return
        if is_class:
            self.classes.append(ClassEntry(PurePosixPath(name), entry_timestamp(info)))
        if filename in POM_FILENAMES:
            self.pom_files.append(FileBuffer(PurePosixPath(name), buffer.getvalue()))
        if name == MANIFEST_PATH:
            self._capture_manifest(buffer.getvalue(), position)

    def _capture_manifest(self, data: bytes, position: int) -> None:
        self.raw_manifest = data
        # A streaming jar reader only sees the manifest as one of the first
        # two entries (optionally preceded by "META-INF/").
        if position > 1:
            return
        try:
            self.primary_manifest = parse_manifest(data, strict=True)
        except ManifestFormatError as exc:
            logger.debug("Strict manifest parse failed: %s", exc)


# zipfile raises RuntimeError for encrypted entries and ValueError or
# OverflowError for nonsensical header fields.
_ZIP_ERRORS = (
    zipfile.BadZipFile,
    zlib.error,
    EOFError,
    NotImplementedError,
    RuntimeError,
    ValueError,
    OverflowError,
)


def _walk_archive(walker: _JarWalker, data: bytes, name: str) -> None:
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except _ZIP_ERRORS as exc:
        raise JarReadError(f"Not a valid jar/zip file: {name}", jar=name) from exc
    with archive:
        try:
            walker.walk(archive)
        except _ZIP_ERRORS as exc:
            raise JarReadError(f"Failed to read jar entries: {name}: {exc}", jar=name) from exc


def hash_jar_bytes(data: bytes, name: str = "<remote>") -> JarHashes:
    """Compute whole-jar and per-class digests for an in-memory jar."""
    walker = _JarWalker(collect=False)
    _walk_archive(walker, data, name)
    return JarHashes(jar_digest=b64_digest(walker.jar_digest), class_digests=walker.class_digests)


def read_jar(path: Path) -> JarContents:
    """Read one local jar in a single pass.

    Raises:
        JarReadError: if the file is unreadable or the archive is malformed
            (bad central directory, CRC mismatch, truncated entry).
    """
    name = path.name
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise JarReadError(f"Cannot read jar file: {path}: {exc}", jar=name) from exc

    walker = _JarWalker(collect=True)
    _walk_archive(walker, data, name)

    manifest = resolve_manifest(walker.primary_manifest, walker.raw_manifest)
    if isinstance(manifest, ParsedOk) and manifest.source == "raw-entry":
        logger.debug("Manifest of %s recovered from raw entry", name)

    hashes = JarHashes(jar_digest=b64_digest(walker.jar_digest), class_digests=walker.class_digests)
    identity = JarIdentity(name=name, directory=str(path.resolve().parent), hashes=hashes)
    return JarContents(
        identity=identity,
        manifest=manifest,
        classes=walker.classes,
        pom_files=walker.pom_files,
    )
