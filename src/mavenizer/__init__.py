"""Identify Maven coordinates of jar files from their contents."""

from mavenizer.__version__ import __version__
from mavenizer.coordinates import Component, MatchClassification, MavenCoordinate

__all__ = [
    "__version__",
    "Component",
    "MatchClassification",
    "MavenCoordinate",
]
