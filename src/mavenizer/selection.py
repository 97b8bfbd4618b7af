"""Automatic and interactive choice of a jar's final coordinate."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from mavenizer.config import AnalysisSettings
from mavenizer.coordinates import Component, MatchClassification, MavenCoordinate, UidCheck
from mavenizer.patterns import user_input_pattern
from mavenizer.verification import JarAnalysisResult, OnlineVerifier

logger = logging.getLogger(__name__)

PAD = "  "
EXIT_COMMAND = "exit!"
SKIP_COMMAND = "0!"
MANIFEST_COMMAND = "manifest!"

InputFn = Callable[[str], str]
OutputFn = Callable[[str], None]


@dataclass(frozen=True)
class Selected:
    coordinate: MavenCoordinate
    found_on_remote: bool
    classification: MatchClassification | None = None


@dataclass(frozen=True)
class Skipped:
    pass


@dataclass(frozen=True)
class ExitRequested:
    pass


SelectionOutcome = Selected | Skipped | ExitRequested


def auto_select(result: JarAnalysisResult) -> UidCheck | None:
    """First identical match in encounter order: direct checks, then version search."""
    identical = result.verification.identical_checks()
    return identical[0] if identical else None


def build_proposals(result: JarAnalysisResult, component: Component, threshold: int) -> list[str]:
    """Offline candidates at or above ``threshold``, values of identical online
    matches, and for groupId/artifactId every pair examined by version search."""
    proposals: dict[str, None] = {}
    for candidate in result.candidates.get(component):
        if candidate.score_sum >= threshold:
            proposals.setdefault(candidate.value)
    for check in result.verification.checks_with_version:
        value = check.coordinate.get(component)
        if value is not None and check.is_identical:
            proposals.setdefault(value)
    for pair, checks in result.verification.checks_by_pair.items():
        if component is not Component.VERSION:
            proposals.setdefault(pair.get(component))
        for check in checks:
            value = check.coordinate.get(component)
            if value is not None and check.is_identical:
                proposals.setdefault(value)
    return list(proposals)


class _Stop(Exception):
    def __init__(self, outcome: SelectionOutcome) -> None:
        super().__init__(type(outcome).__name__)
        self.outcome = outcome


class InteractiveSelector:
    """Asks the operator for groupId, artifactId and version, in that order.

    Input grammar: a literal value, ``<n>!`` for proposal n, ``0!`` to skip
    the jar, ``exit!`` to stop, ``manifest!`` to print the raw manifest.
    """

    def __init__(
        self,
        settings: AnalysisSettings,
        verifier: OnlineVerifier | None = None,
        *,
        input_fn: InputFn = input,
        output: OutputFn = print,
    ) -> None:
        self.settings = settings
        self.verifier = verifier
        self.input_fn = input_fn
        self.output = output

    def select(self, result: JarAnalysisResult) -> SelectionOutcome:
        self.output(PAD + "Please complete missing groupId/artifactId/version info for this jar.")
        self.output(PAD + "Enter the value or enter '<number>!' to select a proposal.")
        self.output(PAD + f"Enter '{SKIP_COMMAND}' to skip this jar, '{EXIT_COMMAND}' to stop the analysis.")

        values: dict[Component, str] = {}
        try:
            for component in (Component.GROUP_ID, Component.ARTIFACT_ID, Component.VERSION):
                values[component] = self._ask(result, component)
        except _Stop as stop:
            return stop.outcome

        coordinate = MavenCoordinate(
            values[Component.GROUP_ID], values[Component.ARTIFACT_ID], values[Component.VERSION]
        )
        outcome = self._reverify(result, coordinate)
        self.input_fn(PAD + "Press Enter to confirm.")
        return outcome

    def _ask(self, result: JarAnalysisResult, component: Component) -> str:
        proposals = build_proposals(result, component, self.settings.proposal_threshold)
        self.output("")
        self.output(PAD + f"Enter {component.display_name} or select from:")
        for number, proposal in enumerate(proposals, start=1):
            self.output(PAD + f"{number}: {proposal}")

        pattern = user_input_pattern(component)
        while True:
            answer = self.input_fn(PAD + f"{component.display_name}: ").strip()
            if not answer:
                continue
            if answer == EXIT_COMMAND:
                raise _Stop(ExitRequested())
            if answer == SKIP_COMMAND:
                raise _Stop(Skipped())
            if answer == MANIFEST_COMMAND:
                self._print_manifest(result)
                continue
            if answer.endswith("!") and answer[:-1].isdigit():
                index = int(answer[:-1])
                if 1 <= index <= len(proposals):
                    answer = proposals[index - 1]
                else:
                    self.output(PAD + f"No proposal with number {index}.")
                    continue
            if pattern.match(answer) is None:
                self.output(PAD + f"Value must match the pattern {pattern.pattern}")
                continue
            return answer

    def _print_manifest(self, result: JarAnalysisResult) -> None:
        if result.manifest_text is None:
            self.output(PAD + "This jar has no manifest.")
            return
        self.output(result.manifest_text)

    def _reverify(self, result: JarAnalysisResult, coordinate: MavenCoordinate) -> Selected:
        if self.verifier is None:
            return Selected(coordinate, found_on_remote=False)
        check = self.verifier.check(coordinate, result.identity.hashes)
        if check.is_identical:
            self.output(PAD + f"Identical jar found online: {check.remote_url}")
            return Selected(coordinate, True, check.classification)
        if check.classification is MatchClassification.NOT_FOUND:
            self.output(PAD + "No conflicting jar found online.")
            return Selected(coordinate, False, check.classification)
        # A different artifact is already published under this coordinate; never overwrite it.
        logger.warning("Jar %s conflicts with published artifact %s", result.identity.name, coordinate)
        self.output(PAD + f"WARNING: A different jar is already published as {coordinate}: {check.remote_url}")
        return Selected(coordinate, True, check.classification)
