"""Signal extractors: each turns one evidence source into ``Proposal`` values."""

from __future__ import annotations

from mavenizer.candidates import CandidateAggregator, CandidateSet, ExtractorKind
from mavenizer.extractors import (
    class_filepath,
    class_timestamp,
    jar_filename,
    manifest,
    pom,
    post,
)
from mavenizer.ingest import JarContents
from mavenizer.manifest import ParsedOk

__all__ = ["score_jar"]


def score_jar(contents: JarContents) -> CandidateSet:
    """Run every extractor over one jar and return the ranked candidates."""
    aggregator = CandidateAggregator()
    aggregator.add(ExtractorKind.CLASS_FILEPATH, class_filepath.analyze(contents.classes))
    aggregator.add(ExtractorKind.CLASS_TIMESTAMP, class_timestamp.analyze(contents.classes))
    aggregator.add(ExtractorKind.POM, pom.analyze(contents.pom_files))
    if isinstance(contents.manifest, ParsedOk):
        aggregator.add(ExtractorKind.MANIFEST, manifest.analyze(contents.manifest.manifest))
    aggregator.add(ExtractorKind.JAR_FILENAME, jar_filename.analyze(contents.identity.name))
    aggregator.add(ExtractorKind.POST, post.analyze(aggregator.candidate_set()))
    return aggregator.candidate_set()
