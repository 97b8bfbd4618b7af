"""Console rendering of per-jar analysis results."""

from __future__ import annotations

from collections.abc import Iterable

from mavenizer.coordinates import MatchClassification, UidCheck
from mavenizer.selection import OutputFn
from mavenizer.verification import JarAnalysisResult

SEPARATOR = "-" * 80
MATCH_PADDING = 16


class ConsolePrinter:
    def __init__(self, output: OutputFn = print) -> None:
        self.output = output

    def print_results(
        self,
        result: JarAnalysisResult,
        auto_selected: UidCheck | None,
        *,
        force_detailed_output: bool = False,
        offline: bool = False,
    ) -> None:
        out = self.output
        out(result.identity.name)

        if auto_selected is not None:
            self._print_auto_selected(auto_selected)
            if not force_detailed_output:
                return
            out("    Forced details:")
        out("")
        out("    SHA_256 (uncompressed): " + result.identity.hashes.jar_digest)
        if not result.manifest_present:
            out("    No manifest found.")

        out("")
        out("    OFFLINE RESULT")
        self._print_candidates(result, padding=8)
        if not offline:
            out("")
            out("    ONLINE RESULT")
            self._print_online(result, padding=8)
        out("")

    def print_jar_end_separator(self) -> None:
        self.output(SEPARATOR)

    def _print_auto_selected(self, check: UidCheck) -> None:
        if check.classification is MatchClassification.EXACT_SHA:
            self.output(f"    Found identical jar online, UID: {check.coordinate}")
        else:
            self.output(f"    Found not fully identical jar with identical classes online, UID: {check.coordinate}")

    def _print_candidates(self, result: JarAnalysisResult, padding: int) -> None:
        pad = " " * padding
        for component, candidates in result.candidates:
            if not candidates:
                continue
            self.output(pad + component.name)
            labels = [f"{c.score_sum:>2} | {c.value}" for c in candidates]
            width = max(20, *(len(label) for label in labels))
            for candidate, label in zip(candidates, labels):
                for index, item in enumerate(candidate.evidence):
                    value = (label if index == 0 else "").ljust(width + 2)
                    self.output(f"{pad}    {value} ({item.score} | {item.kind.display_name} -> {item.detail})")

    def _print_checks(self, checks: Iterable[UidCheck], padding: int) -> None:
        pad = " " * padding
        for check in checks:
            url = f" AT {check.remote_url}" if check.remote_url else ""
            label = f"{check.classification.name}   FOR ".rjust(MATCH_PADDING)
            self.output(f"{pad}{label}{check.coordinate}{url}")

    def _print_online(self, result: JarAnalysisResult, padding: int) -> None:
        pad = " " * padding
        verification = result.verification
        if not verification.checks_with_version and not verification.checks_by_pair:
            self.output(pad + "Did not gather enough information to attempt online search!")
            return
        self._print_checks(verification.checks_with_version, padding + 2)
        if verification.checks_by_pair:
            self.output(pad + "Found groupId / artifactId pairs online, comparing local jar with newest and oldest versions:")
            for pair, checks in verification.checks_by_pair.items():
                self.output(pad + "  " + "PAIR:".ljust(MATCH_PADDING + 2) + str(pair))
                self._print_checks(checks, padding + 4)
