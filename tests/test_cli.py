"""Smoke tests for the mavenizer command line."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import build_jar, class_entries
from mavenizer import cli, logging_config
from mavenizer.exceptions import RepositoryUnreachableError


@pytest.fixture(autouse=True)
def keep_test_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logging_config, "_CONFIGURED", True)


@pytest.fixture
def widget_jar(tmp_path: Path) -> Path:
    props = b"groupId=org.example\nartifactId=widget\nversion=2.3.1\n"
    return build_jar(
        tmp_path / "jars" / "widget-2.3.1.jar",
        [
            *class_entries("org/example/widget", ["Widget", "Gadget"]),
            ("META-INF/maven/org.example/widget/pom.properties", props),
        ],
        manifest={"Implementation-Version": "2.3.1"},
    )


def test_no_command_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main([]) == 1
    assert "analyze" in capsys.readouterr().out


def test_offline_run(tmp_path: Path, widget_jar: Path, capsys: pytest.CaptureFixture[str]) -> None:
    report = tmp_path / "report.json"
    assert cli.main(["analyze", str(widget_jar.parent), "--offline", "--report-file", str(report)]) == 0
    out = capsys.readouterr().out
    assert "ONLINE ANALYSIS DISABLED!" in out
    assert "widget-2.3.1.jar" in out
    assert "Analysis complete (1/1 excluded from report)." in out
    assert not report.exists()


@pytest.mark.parametrize(
    "extra",
    [
        ["--offset", "-1"],
        ["--limit", "-3"],
    ],
)
def test_invalid_numbers(tmp_path: Path, widget_jar: Path, extra: list[str]) -> None:
    args = ["analyze", str(widget_jar), "--offline", "--report-file", str(tmp_path / "r.json"), *extra]
    assert cli.main(args) == 2


def test_missing_jar_path(tmp_path: Path) -> None:
    assert cli.main(["analyze", str(tmp_path / "missing.jar"), "--offline"]) == 2


def test_existing_report_file_rejected(tmp_path: Path, widget_jar: Path) -> None:
    report = tmp_path / "report.json"
    report.write_text("{}", encoding="utf-8")
    assert cli.main(["analyze", str(widget_jar), "--offline", "--report-file", str(report)]) == 2


def test_missing_report_directory_rejected(tmp_path: Path, widget_jar: Path) -> None:
    report = tmp_path / "missing" / "report.json"
    assert cli.main(["analyze", str(widget_jar), "--offline", "--report-file", str(report)]) == 2


def test_bad_config_file(tmp_path: Path, widget_jar: Path) -> None:
    config = tmp_path / "mavenizer.yaml"
    config.write_text("no_such_setting: 1\n", encoding="utf-8")
    args = ["analyze", str(widget_jar), "--offline", "--config", str(config), "--report-file", str(tmp_path / "r.json")]
    assert cli.main(args) == 2


def test_corrupt_jar_exit_code(tmp_path: Path) -> None:
    broken = tmp_path / "broken.jar"
    broken.write_bytes(b"not a zip")
    assert cli.main(["analyze", str(broken), "--offline", "--report-file", str(tmp_path / "r.json")]) == 1


def test_unreachable_repositories_exit_code(
    tmp_path: Path, widget_jar: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def unreachable(args):
        raise RepositoryUnreachableError("Online repositories are not reachable", repositories=["https://x/"])

    monkeypatch.setattr(cli, "run_analyze", unreachable)
    assert cli.main(["analyze", str(widget_jar), "--report-file", str(tmp_path / "r.json")]) == 1


def test_keyboard_interrupt(tmp_path: Path, widget_jar: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def interrupted(args):
        raise KeyboardInterrupt

    monkeypatch.setattr(cli, "run_analyze", interrupted)
    assert cli.main(["analyze", str(widget_jar)]) == 130


def test_online_run_against_explicit_repository(
    tmp_path: Path, widget_jar: Path, httpserver, capsys: pytest.CaptureFixture[str]
) -> None:
    httpserver.expect_request("/maven2/", method="HEAD").respond_with_data("")
    httpserver.expect_request("/maven2/org/example/widget/2.3.1/widget-2.3.1.jar").respond_with_data(
        widget_jar.read_bytes()
    )
    report = tmp_path / "report.json"
    repository = httpserver.url_for("/maven2/")

    code = cli.main(["analyze", str(widget_jar), "--remote-repos", repository, "--report-file", str(report)])

    assert code == 0
    assert "Found identical jar online, UID: org.example:widget:2.3.1" in capsys.readouterr().out
    document = json.loads(report.read_text(encoding="utf-8"))
    assert document["analysisInfo"]["remoteRepos"] == [repository]
    assert document["jarResults"][0]["foundOnRemote"] is True
