"""Online verification of coordinate candidates against remote repositories.

All lookups go through a process-wide ``ResolutionCache`` so each distinct
coordinate is resolved at most once, no matter how many jars ask for it.
Verification work waits on a one-time startup gate that configures the
repositories and proves at least one of them is reachable.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from types import MappingProxyType

from mavenizer.candidates import CandidateSet
from mavenizer.config import AnalysisSettings
from mavenizer.coordinates import (
    Component,
    JarHashes,
    JarIdentity,
    MatchClassification,
    MavenCoordinate,
    UidCheck,
)
from mavenizer.exceptions import JarReadError, MavenizerError, RepositoryUnreachableError
from mavenizer.ingest import hash_jar_bytes
from mavenizer.logging_config import jar_context
from mavenizer.repository import RepositoryClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CoordinateToCheck:
    coordinate: MavenCoordinate
    scores: Mapping[Component, int]

    @property
    def combined_score(self) -> int:
        return sum(self.scores.values())


@dataclass(frozen=True)
class RemoteResolution:
    url: str
    # None when the downloaded file is not a readable jar
    hashes: JarHashes | None


@dataclass(frozen=True)
class VerificationResult:
    checks_with_version: tuple[UidCheck, ...] = ()
    checks_by_pair: Mapping[MavenCoordinate, tuple[UidCheck, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def all_checks(self) -> list[UidCheck]:
        """Direct checks first, then fallback checks, in encounter order."""
        checks = list(self.checks_with_version)
        for pair_checks in self.checks_by_pair.values():
            checks.extend(pair_checks)
        return checks

    def identical_checks(self) -> list[UidCheck]:
        return [check for check in self.all_checks() if check.is_identical]


@dataclass(frozen=True)
class JarAnalysisResult:
    identity: JarIdentity
    manifest_present: bool
    candidates: CandidateSet
    verification: VerificationResult
    manifest_text: str | None = None


def classify(local: JarHashes, remote: RemoteResolution | None) -> MatchClassification:
    """Whole-jar digest first, then the complete set of per-class digests."""
    if remote is None:
        return MatchClassification.NOT_FOUND
    if remote.hashes is None:
        return MatchClassification.NO_MATCH
    if remote.hashes.jar_digest == local.jar_digest:
        return MatchClassification.EXACT_SHA
    remote_classes = remote.hashes.class_digests
    if len(remote_classes) == len(local.class_digests) and all(
        remote_classes.get(path) == digest for path, digest in local.class_digests.items()
    ):
        return MatchClassification.EXACT_CLASS_DIGESTS
    return MatchClassification.NO_MATCH


class _CacheEntry:
    def __init__(self) -> None:
        self.event = threading.Event()
        self.value: RemoteResolution | None = None
        self.error: Exception | None = None


class ResolutionCache:
    """Coordinate -> remote resolution; the first caller fetches, later callers wait."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[MavenCoordinate, _CacheEntry] = {}
        self.fetch_count = 0

    def get_or_fetch(
        self,
        coordinate: MavenCoordinate,
        fetcher: Callable[[MavenCoordinate], RemoteResolution | None],
    ) -> RemoteResolution | None:
        with self._lock:
            entry = self._entries.get(coordinate)
            if entry is None:
                entry = _CacheEntry()
                self._entries[coordinate] = entry
                should_fetch = True
                self.fetch_count += 1
            else:
                should_fetch = False
        if should_fetch:
            try:
                entry.value = fetcher(coordinate)
            except Exception as exc:
                entry.error = exc
                raise
            finally:
                entry.event.set()
        else:
            entry.event.wait()
        if entry.error is not None:
            raise entry.error
        return entry.value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, coordinate: MavenCoordinate) -> bool:
        with self._lock:
            return coordinate in self._entries


def select_candidates(candidates: CandidateSet, settings: AnalysisSettings) -> list[CoordinateToCheck]:
    """Up to G x A x V combinations of top candidates, highest combined score first.

    Without any eligible version the groupId/artifactId pair is emitted with a
    ``None`` version.
    """
    threshold = settings.online_search_threshold

    def top(component: Component):
        return candidates.top(component, settings.candidates_per_component(component), threshold)

    selected: list[CoordinateToCheck] = []
    versions = top(Component.VERSION)
    for group in top(Component.GROUP_ID):
        for artifact in top(Component.ARTIFACT_ID):
            if not versions:
                selected.append(
                    CoordinateToCheck(
                        MavenCoordinate(group.value, artifact.value),
                        MappingProxyType({Component.GROUP_ID: group.score_sum, Component.ARTIFACT_ID: artifact.score_sum}),
                    )
                )
                continue
            for version in versions:
                selected.append(
                    CoordinateToCheck(
                        MavenCoordinate(group.value, artifact.value, version.value),
                        MappingProxyType(
                            {
                                Component.GROUP_ID: group.score_sum,
                                Component.ARTIFACT_ID: artifact.score_sum,
                                Component.VERSION: version.score_sum,
                            }
                        ),
                    )
                )
    # sorted() is stable: equal totals keep the nested-loop order.
    return sorted(selected, key=lambda c: c.combined_score, reverse=True)


def needs_version_search(candidates: CandidateSet, settings: AnalysisSettings) -> bool:
    """True when version evidence is too weak to trust on its own."""
    versions = candidates.versions
    if not versions:
        return True
    best = versions[0].score_sum
    strong = any(v.score_sum >= settings.version_skip_search_threshold for v in versions)
    return best <= settings.version_search_threshold and not strong


def sample_versions(versions: Sequence[str]) -> list[str]:
    """Newest and oldest of a newest-first version list."""
    if not versions:
        return []
    if len(versions) == 1:
        return [versions[0]]
    return [versions[0], versions[-1]]


def _unique(coordinates: Iterable[MavenCoordinate]) -> list[MavenCoordinate]:
    return list(dict.fromkeys(coordinates))


class OnlineVerifier:
    """Runs per-jar verification in a worker pool behind a startup gate.

    Args:
        client_factory: builds the repository client; runs once on the gate
            thread (it may run ``mvn`` to discover repositories).
        settings: thresholds and pool sizes.
        probe_only: prove connectivity with ``client.probe()`` instead of
            resolving the test artifact (used for explicitly given repositories).
    """

    def __init__(
        self,
        client_factory: Callable[[], RepositoryClient],
        settings: AnalysisSettings,
        *,
        probe_only: bool = False,
        cache: ResolutionCache | None = None,
    ) -> None:
        self.settings = settings
        self.cache = cache or ResolutionCache()
        self._probe_only = probe_only
        self._init_pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mavenizer-init")
        self._pool = ThreadPoolExecutor(
            max_workers=settings.verification_workers, thread_name_prefix="mavenizer-verify"
        )
        self._configured: Future[RepositoryClient] = self._init_pool.submit(client_factory)
        self._ready: Future[None] = self._init_pool.submit(self._check_connectivity)

    # -- startup gate -----------------------------------------------------

    def _check_connectivity(self) -> None:
        try:
            client = self._configured.result()
        except MavenizerError as exc:
            raise RepositoryUnreachableError(f"Repository configuration failed: {exc}") from exc
        repositories = client.remote_repositories()
        if self._probe_only:
            reachable = client.probe()
        else:
            test = self.settings.test_artifact()
            reachable = self.cache.get_or_fetch(test, self._fetch) is not None
        if not reachable:
            raise RepositoryUnreachableError(
                "Online repositories are not reachable", repositories=repositories
            )
        logger.info("Online repositories are reachable: %s", ", ".join(repositories))

    def wait_ready(self) -> None:
        """Block until the startup gate has passed.

        Raises:
            RepositoryUnreachableError: if no configured repository is reachable.
        """
        self._ready.result()

    @property
    def client(self) -> RepositoryClient:
        return self._configured.result()

    def remote_repositories(self) -> list[str]:
        return self.client.remote_repositories()

    # -- resolution -------------------------------------------------------

    def _fetch(self, coordinate: MavenCoordinate) -> RemoteResolution | None:
        artifact = self.client.resolve(coordinate)
        if artifact is None:
            return None
        try:
            hashes = hash_jar_bytes(artifact.content, name=artifact.url)
        except JarReadError as exc:
            logger.warning("Remote artifact %s is not a readable jar: %s", coordinate, exc)
            hashes = None
        return RemoteResolution(url=artifact.url, hashes=hashes)

    def check(self, coordinate: MavenCoordinate, local: JarHashes) -> UidCheck:
        remote = self.cache.get_or_fetch(coordinate, self._fetch)
        classification = classify(local, remote)
        logger.debug("Checked %s: %s", coordinate, classification.value)
        return UidCheck(coordinate, classification, remote.url if remote else None)

    def find_jars(self, coordinates: Sequence[MavenCoordinate], local: JarHashes) -> list[UidCheck]:
        """Check coordinates in order; an ``EXACT_SHA`` match ends the search.

        Earlier non-matching results are dropped when an exact match turns up,
        though the cache keeps them for other jars.
        """
        results: list[UidCheck] = []
        for coordinate in _unique(coordinates):
            check = self.check(coordinate, local)
            if check.classification is MatchClassification.EXACT_SHA:
                return [check]
            results.append(check)
        return results

    def search_versions_and_find_jars(
        self, pairs: Sequence[MavenCoordinate], local: JarHashes
    ) -> dict[MavenCoordinate, tuple[UidCheck, ...]]:
        """List remote versions per pair and check only the newest and oldest."""
        results: dict[MavenCoordinate, tuple[UidCheck, ...]] = {}
        for pair in _unique(p.pair() for p in pairs):
            versions = self.client.list_versions(pair.group_id, pair.artifact_id)
            if not versions:
                logger.debug("No remote versions for %s", pair)
                continue
            sampled = [pair.with_version(v) for v in sample_versions(versions)]
            results[pair] = tuple(self.find_jars(sampled, local))
        return results

    def verify(self, identity: JarIdentity, candidates: CandidateSet) -> VerificationResult:
        """Synchronous verification of one jar; waits for the startup gate."""
        with jar_context(identity.name):
            self.wait_ready()
            selected = select_candidates(candidates, self.settings)
            with_version = [c.coordinate for c in selected if c.coordinate.version is not None]
            pairs = [c.coordinate for c in selected if c.coordinate.version is None]
            if with_version and needs_version_search(candidates, self.settings):
                pairs.extend(c.pair() for c in with_version)

            direct = self.find_jars(with_version, identity.hashes)
            exact = any(c.classification is MatchClassification.EXACT_SHA for c in direct)
            fallback = {}
            if pairs and not exact:
                fallback = self.search_versions_and_find_jars(pairs, identity.hashes)
            return VerificationResult(tuple(direct), MappingProxyType(fallback))

    def submit(self, identity: JarIdentity, candidates: CandidateSet) -> Future[VerificationResult]:
        """Start verification of one jar in the background."""
        return self._pool.submit(self.verify, identity, candidates)

    def shutdown(self) -> None:
        """Finish pending verification and give repository discovery a bounded wait."""
        self._pool.shutdown(wait=True)
        _, not_done = wait([self._configured], timeout=self.settings.settings_shutdown_timeout_s)
        if not_done:
            logger.warning("Repository discovery did not finish in time; abandoning it")
        self._init_pool.shutdown(wait=False, cancel_futures=True)
        self.cache.clear()
