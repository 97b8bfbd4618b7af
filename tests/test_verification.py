"""Tests for online verification: classification, caching, search strategy, startup gate."""

from __future__ import annotations

import threading
import time
import zipfile
from collections.abc import Generator

import pytest

from conftest import FakeRepositoryClient, class_entries, jar_bytes, mark_encrypted
from mavenizer.candidates import CandidateAggregator, CandidateSet, ExtractorKind, Proposal
from mavenizer.config import AnalysisSettings
from mavenizer.coordinates import Component, JarIdentity, MatchClassification, MavenCoordinate
from mavenizer.exceptions import RepositoryUnreachableError, SettingsDiscoveryError
from mavenizer.ingest import hash_jar_bytes
from mavenizer.verification import (
    OnlineVerifier,
    RemoteResolution,
    ResolutionCache,
    classify,
    needs_version_search,
    sample_versions,
    select_candidates,
)

WIDGET = MavenCoordinate("org.example", "widget", "2.3.1")
WIDGET_CLASSES = class_entries("org/example/widget", ["Widget", "Gadget"])


def _candidates(
    groups: dict[str, int] | None = None,
    artifacts: dict[str, int] | None = None,
    versions: dict[str, int] | None = None,
) -> CandidateSet:
    aggregator = CandidateAggregator()
    for component, values in (
        (Component.GROUP_ID, groups or {}),
        (Component.ARTIFACT_ID, artifacts or {}),
        (Component.VERSION, versions or {}),
    ):
        aggregator.add(ExtractorKind.MANIFEST, [Proposal(component, v, s, "test") for v, s in values.items()])
    return aggregator.candidate_set()


def _identity(data: bytes, name: str = "widget.jar") -> JarIdentity:
    return JarIdentity(name=name, directory="/jars", hashes=hash_jar_bytes(data, name))


@pytest.fixture
def make_verifier() -> Generator:
    created: list[OnlineVerifier] = []

    def _create(client, settings: AnalysisSettings | None = None, **kwargs) -> OnlineVerifier:
        verifier = OnlineVerifier(lambda: client, settings or AnalysisSettings(), **kwargs)
        created.append(verifier)
        return verifier

    yield _create
    for verifier in created:
        verifier.shutdown()


def _widget_calls(client: FakeRepositoryClient) -> list[MavenCoordinate]:
    return [c for c in client.resolve_calls if c.group_id == "org.example"]


class TestClassify:
    def setup_method(self) -> None:
        self.local_bytes = jar_bytes(WIDGET_CLASSES)
        self.local = hash_jar_bytes(self.local_bytes)

    def test_identical_bytes_are_exact_sha(self) -> None:
        remote = RemoteResolution("u", hash_jar_bytes(self.local_bytes))
        assert classify(self.local, remote) is MatchClassification.EXACT_SHA

    def test_same_classes_different_resources(self) -> None:
        remote_bytes = jar_bytes([*WIDGET_CLASSES, ("META-INF/NOTICE", b"notice")])
        remote = RemoteResolution("u", hash_jar_bytes(remote_bytes))
        assert classify(self.local, remote) is MatchClassification.EXACT_CLASS_DIGESTS

    def test_extra_remote_class_is_no_match(self) -> None:
        remote_bytes = jar_bytes([*WIDGET_CLASSES, *class_entries("org/example/widget", ["Extra"])])
        remote = RemoteResolution("u", hash_jar_bytes(remote_bytes))
        assert classify(self.local, remote) is MatchClassification.NO_MATCH

    def test_unresolved_is_not_found(self) -> None:
        assert classify(self.local, None) is MatchClassification.NOT_FOUND

    def test_unreadable_remote_is_no_match(self) -> None:
        assert classify(self.local, RemoteResolution("u", None)) is MatchClassification.NO_MATCH

    def test_identical_predicate(self) -> None:
        identical = {c for c in MatchClassification if c.is_considered_identical}
        assert identical == {MatchClassification.EXACT_SHA, MatchClassification.EXACT_CLASS_DIGESTS}


class TestResolutionCache:
    def test_concurrent_callers_share_one_fetch(self) -> None:
        cache = ResolutionCache()
        calls: list[MavenCoordinate] = []
        start = threading.Barrier(8)
        results: list[RemoteResolution | None] = []
        lock = threading.Lock()

        def fetcher(coordinate: MavenCoordinate) -> RemoteResolution:
            calls.append(coordinate)
            time.sleep(0.05)
            return RemoteResolution("https://repo/widget.jar", None)

        def worker() -> None:
            start.wait()
            value = cache.get_or_fetch(WIDGET, fetcher)
            with lock:
                results.append(value)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert calls == [WIDGET]
        assert cache.fetch_count == 1
        assert len(results) == 8
        assert all(result is results[0] for result in results)

    def test_fetch_error_reaches_every_caller(self) -> None:
        cache = ResolutionCache()

        def failing(coordinate: MavenCoordinate) -> RemoteResolution:
            raise SettingsDiscoveryError("boom")

        with pytest.raises(SettingsDiscoveryError):
            cache.get_or_fetch(WIDGET, failing)
        with pytest.raises(SettingsDiscoveryError):
            cache.get_or_fetch(WIDGET, failing)
        assert cache.fetch_count == 1

    def test_clear(self) -> None:
        cache = ResolutionCache()
        cache.get_or_fetch(WIDGET, lambda c: None)
        assert WIDGET in cache
        cache.clear()
        assert WIDGET not in cache


class TestSearchStrategy:
    def test_select_candidates_orders_by_combined_score(self) -> None:
        candidates = _candidates(
            groups={"org.example": 10, "org.other": 2},
            artifacts={"widget": 6},
            versions={"2.3.1": 6, "2.0": 3, "1.0": 1},
        )
        selected = select_candidates(candidates, AnalysisSettings())
        assert [str(c.coordinate) for c in selected] == [
            "org.example:widget:2.3.1",
            "org.example:widget:2.0",
            "org.other:widget:2.3.1",
            "org.other:widget:2.0",
        ]
        assert selected[0].combined_score == 22

    def test_select_candidates_without_versions_yields_pairs(self) -> None:
        selected = select_candidates(_candidates({"org.example": 4}, {"widget": 4}), AnalysisSettings())
        assert [c.coordinate for c in selected] == [MavenCoordinate("org.example", "widget")]

    def test_zero_score_candidates_are_not_checked(self) -> None:
        candidates = _candidates({"org.example": 4}, {"widget": 4}, {"2019.03.14": 0})
        selected = select_candidates(candidates, AnalysisSettings())
        assert [c.coordinate.version for c in selected] == [None]

    @pytest.mark.parametrize(
        ("versions", "expected"),
        [
            ({}, True),
            ({"1.0": 1}, True),
            ({"1.0": 2}, False),
            ({"1.0": 1, "2.0": 1}, True),
        ],
    )
    def test_needs_version_search(self, versions: dict[str, int], expected: bool) -> None:
        candidates = _candidates({"org.example": 4}, {"widget": 4}, versions)
        assert needs_version_search(candidates, AnalysisSettings()) is expected

    def test_sample_versions(self) -> None:
        assert sample_versions([]) == []
        assert sample_versions(["1.0"]) == ["1.0"]
        assert sample_versions(["3.0", "2.0", "1.0"]) == ["3.0", "1.0"]


class TestOnlineVerifier:
    def test_exact_sha_match_short_circuits(self, fake_repository: FakeRepositoryClient, make_verifier) -> None:
        local = jar_bytes(WIDGET_CLASSES)
        fake_repository.artifacts[WIDGET] = local
        fake_repository.artifacts[WIDGET.with_version("2.3.0")] = local
        verifier = make_verifier(fake_repository)
        candidates = _candidates({"org.example": 10}, {"widget": 10}, {"2.3.1": 10, "2.3.0": 5})

        result = verifier.verify(_identity(local), candidates)

        assert [c.classification for c in result.checks_with_version] == [MatchClassification.EXACT_SHA]
        assert _widget_calls(fake_repository) == [WIDGET]
        assert result.checks_by_pair == {}
        assert result.checks_with_version[0].remote_url.endswith("org/example/widget/2.3.1/widget-2.3.1.jar")

    def test_version_search_checks_newest_and_oldest(
        self, fake_repository: FakeRepositoryClient, make_verifier
    ) -> None:
        fake_repository.versions[("org.example", "widget")] = ["3.0", "2.0", "1.0"]
        verifier = make_verifier(fake_repository)
        candidates = _candidates({"org.example": 10}, {"widget": 10})

        result = verifier.verify(_identity(jar_bytes(WIDGET_CLASSES)), candidates)

        assert _widget_calls(fake_repository) == [
            MavenCoordinate("org.example", "widget", "3.0"),
            MavenCoordinate("org.example", "widget", "1.0"),
        ]
        pair = MavenCoordinate("org.example", "widget")
        assert [c.classification for c in result.checks_by_pair[pair]] == [
            MatchClassification.NOT_FOUND,
            MatchClassification.NOT_FOUND,
        ]

    def test_weak_version_triggers_search_alongside_direct_checks(
        self, fake_repository: FakeRepositoryClient, make_verifier
    ) -> None:
        fake_repository.versions[("org.example", "widget")] = ["2.0"]
        verifier = make_verifier(fake_repository)
        candidates = _candidates({"org.example": 10}, {"widget": 10}, {"2019.03.14": 1})

        result = verifier.verify(_identity(jar_bytes(WIDGET_CLASSES)), candidates)

        assert [c.coordinate.version for c in result.checks_with_version] == ["2019.03.14"]
        assert list(result.checks_by_pair) == [MavenCoordinate("org.example", "widget")]
        assert fake_repository.list_calls == [("org.example", "widget")]

    def test_exact_sha_skips_version_search(self, fake_repository: FakeRepositoryClient, make_verifier) -> None:
        local = jar_bytes(WIDGET_CLASSES)
        fake_repository.artifacts[WIDGET] = local
        verifier = make_verifier(fake_repository)
        candidates = _candidates({"org.example": 10}, {"widget": 10}, {"2.3.1": 1})

        result = verifier.verify(_identity(local), candidates)

        assert result.identical_checks()[0].coordinate == WIDGET
        assert fake_repository.list_calls == []

    def test_two_jars_share_one_resolution(self, fake_repository: FakeRepositoryClient, make_verifier) -> None:
        fake_repository.artifacts[WIDGET] = jar_bytes(WIDGET_CLASSES)
        verifier = make_verifier(fake_repository)
        candidates = _candidates({"org.example": 10}, {"widget": 10}, {"2.3.1": 10})
        first = _identity(jar_bytes(WIDGET_CLASSES), "widget.jar")
        second = _identity(jar_bytes([*WIDGET_CLASSES, ("extra.txt", b"x")]), "widget-copy.jar")

        futures = [verifier.submit(first, candidates), verifier.submit(second, candidates)]
        results = [future.result() for future in futures]

        assert _widget_calls(fake_repository) == [WIDGET]
        urls = {result.checks_with_version[0].remote_url for result in results}
        assert len(urls) == 1
        assert [r.checks_with_version[0].classification for r in results] == [
            MatchClassification.EXACT_SHA,
            MatchClassification.EXACT_CLASS_DIGESTS,
        ]

    def test_remote_file_that_is_not_a_jar(self, fake_repository: FakeRepositoryClient, make_verifier) -> None:
        fake_repository.artifacts[WIDGET] = b"<html>not found</html>"
        verifier = make_verifier(fake_repository)
        verifier.wait_ready()
        check = verifier.check(WIDGET, hash_jar_bytes(jar_bytes(WIDGET_CLASSES)))
        assert check.classification is MatchClassification.NO_MATCH

    def test_encrypted_remote_jar_is_no_match(self, fake_repository: FakeRepositoryClient, make_verifier) -> None:
        fake_repository.artifacts[WIDGET] = mark_encrypted(jar_bytes(WIDGET_CLASSES, compression=zipfile.ZIP_STORED))
        verifier = make_verifier(fake_repository)
        verifier.wait_ready()
        check = verifier.check(WIDGET, hash_jar_bytes(jar_bytes(WIDGET_CLASSES)))
        assert check.classification is MatchClassification.NO_MATCH
        assert check.remote_url is not None

    def test_gate_resolves_test_artifact(
        self, fake_repository: FakeRepositoryClient, junit_coordinate: MavenCoordinate, make_verifier
    ) -> None:
        verifier = make_verifier(fake_repository)
        verifier.wait_ready()
        assert fake_repository.resolve_calls == [junit_coordinate]
        assert verifier.remote_repositories() == [fake_repository.base_url]

    def test_gate_fails_without_test_artifact(self, make_verifier) -> None:
        verifier = make_verifier(FakeRepositoryClient())
        with pytest.raises(RepositoryUnreachableError) as excinfo:
            verifier.wait_ready()
        assert excinfo.value.context["repositories"] == ["https://repo.example.com/maven2/"]

    def test_probe_only_gate(self, make_verifier) -> None:
        client = FakeRepositoryClient(reachable=False)
        verifier = make_verifier(client, probe_only=True)
        with pytest.raises(RepositoryUnreachableError):
            verifier.wait_ready()
        assert client.probe_calls == 1
        assert client.resolve_calls == []

    def test_gate_failure_reaches_submitted_work(self, make_verifier) -> None:
        verifier = make_verifier(FakeRepositoryClient(reachable=False), probe_only=True)
        future = verifier.submit(_identity(jar_bytes(WIDGET_CLASSES)), _candidates())
        with pytest.raises(RepositoryUnreachableError):
            future.result()

    def test_configuration_failure_is_unreachable(self) -> None:
        def factory() -> FakeRepositoryClient:
            raise SettingsDiscoveryError("Malformed Maven settings")

        verifier = OnlineVerifier(factory, AnalysisSettings())
        try:
            with pytest.raises(RepositoryUnreachableError):
                verifier.wait_ready()
        finally:
            verifier.shutdown()
