"""Per-run driver: offline scoring in discovery order, verification in the background."""

from __future__ import annotations

import logging
from concurrent.futures import Future
from dataclasses import dataclass, field
from pathlib import Path

from mavenizer.candidates import CandidateSet
from mavenizer.config import AnalysisSettings
from mavenizer.coordinates import JarIdentity
from mavenizer.extractors import score_jar
from mavenizer.ingest import read_jar
from mavenizer.logging_config import jar_context
from mavenizer.manifest import MissingManifest, ParsedOk
from mavenizer.printer import ConsolePrinter
from mavenizer.report import AnalysisReport, JarReport, resolve_report_path, write_json
from mavenizer.secrets import redact_url
from mavenizer.selection import (
    ExitRequested,
    InteractiveSelector,
    OutputFn,
    Selected,
    auto_select,
)
from mavenizer.verification import JarAnalysisResult, OnlineVerifier, VerificationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisOptions:
    paths: list[Path]
    interactive: bool = False
    offline: bool = False
    limit: int | None = None
    offset: int = 0
    force_detailed_output: bool = False
    report_file: str | None = None


@dataclass
class PendingJar:
    identity: JarIdentity
    candidates: CandidateSet
    manifest_present: bool
    manifest_text: str | None
    verification: Future[VerificationResult]

    def join(self) -> JarAnalysisResult:
        return JarAnalysisResult(
            identity=self.identity,
            manifest_present=self.manifest_present,
            candidates=self.candidates,
            verification=self.verification.result(),
            manifest_text=self.manifest_text,
        )


@dataclass
class AnalysisOutcome:
    total: int
    reports: list[JarReport] = field(default_factory=list)
    report_path: Path | None = None
    stopped_early: bool = False

    @property
    def skipped(self) -> int:
        return self.total - len(self.reports)


def discover_jars(paths: list[Path]) -> list[Path]:
    """Files are taken as given; directories contribute their ``*.jar`` files (not recursive)."""
    jars: list[Path] = []
    for path in paths:
        if path.is_dir():
            jars.extend(sorted(p for p in path.iterdir() if p.is_file() and p.name.endswith(".jar")))
        elif path.is_file():
            jars.append(path)
        else:
            logger.warning("Skipping missing path: %s", path)
    return jars


def _completed(value: VerificationResult) -> Future[VerificationResult]:
    future: Future[VerificationResult] = Future()
    future.set_result(value)
    return future


class Analyzer:
    def __init__(
        self,
        options: AnalysisOptions,
        settings: AnalysisSettings,
        *,
        verifier: OnlineVerifier | None = None,
        selector: InteractiveSelector | None = None,
        printer: ConsolePrinter | None = None,
        output: OutputFn = print,
    ) -> None:
        if not options.offline and verifier is None:
            raise ValueError("Online analysis requires a verifier")
        self.options = options
        self.settings = settings
        self.verifier = None if options.offline else verifier
        self.selector = selector
        self.printer = printer or ConsolePrinter(output)
        self.output = output

    def select_jars(self) -> list[Path]:
        jars = discover_jars(self.options.paths)[self.options.offset :]
        if self.options.limit is not None and self.options.limit >= 0:
            jars = jars[: self.options.limit]
        return jars

    def analyze_offline(self, path: Path) -> PendingJar:
        """Ingest and score one jar, then launch its verification in the background."""
        contents = read_jar(path)
        with jar_context(contents.identity.name):
            if isinstance(contents.manifest, MissingManifest):
                logger.warning(
                    "Did not find manifest in '%s' (%s); expected 'META-INF/MANIFEST.MF'",
                    contents.identity.name,
                    contents.manifest.reason,
                )
            candidates = score_jar(contents)

        manifest_text = contents.manifest.manifest.text if isinstance(contents.manifest, ParsedOk) else None
        if self.verifier is not None:
            verification = self.verifier.submit(contents.identity, candidates)
        else:
            verification = _completed(VerificationResult())
        return PendingJar(
            identity=contents.identity,
            candidates=candidates,
            manifest_present=isinstance(contents.manifest, ParsedOk),
            manifest_text=manifest_text,
            verification=verification,
        )

    def run(self) -> AnalysisOutcome:
        try:
            return self._run()
        finally:
            if self.verifier is not None:
                self.output("Online-Check cleanup started.")
                self.verifier.shutdown()

    def _run(self) -> AnalysisOutcome:
        jars = self.select_jars()
        self.output("Offline-Analysis started.")
        pending: list[PendingJar] = []
        for index, path in enumerate(jars, start=1):
            logger.debug("Analyzing jar %s", path)
            self.output(f"Offline-Analysis: Jar {index}/{len(jars)}")
            pending.append(self.analyze_offline(path))

        outcome = AnalysisOutcome(total=len(pending))
        gate_passed = self.verifier is None
        for jar in pending:
            if not gate_passed:
                self.output("Online-Check initializing...")
                self.verifier.wait_ready()
                gate_passed = True
                self.output("Online-Check initialized!")
                self.output("")
            report = self._decide(jar.join())
            if isinstance(report, ExitRequested):
                outcome.stopped_early = True
                break
            if report is not None:
                outcome.reports.append(report)

        self.output(f"Analysis complete ({outcome.skipped}/{outcome.total} excluded from report).")
        if outcome.reports and self.options.report_file:
            outcome.report_path = self._write_report(outcome.reports)
        elif not outcome.reports:
            self.output("Skipping report file because no jars were resolved.")
        return outcome

    def _decide(self, result: JarAnalysisResult) -> JarReport | ExitRequested | None:
        selected = auto_select(result)
        self.printer.print_results(
            result,
            selected,
            force_detailed_output=self.options.force_detailed_output,
            offline=self.options.offline,
        )
        report: JarReport | ExitRequested | None = None
        if selected is not None:
            report = JarReport.for_jar(result.identity, selected.coordinate, found_on_remote=True)
        elif self.options.interactive and self.selector is not None:
            outcome = self.selector.select(result)
            if isinstance(outcome, ExitRequested):
                return outcome
            if isinstance(outcome, Selected):
                report = JarReport.for_jar(result.identity, outcome.coordinate, outcome.found_on_remote)
        self.printer.print_jar_end_separator()
        return report

    def _write_report(self, reports: list[JarReport]) -> Path:
        path = resolve_report_path(self.options.report_file)
        repos = [redact_url(url) for url in self.verifier.remote_repositories()] if self.verifier else []
        report = AnalysisReport(online_check_enabled=not self.options.offline, remote_repos=repos, jar_results=reports)
        self.output(f"Writing report file: {path.resolve()}")
        write_json(path, report.as_dict())
        return path
