"""Access to remote Maven repositories over HTTP (Maven 2 layout)."""

from __future__ import annotations

import logging
import time
import xml.etree.ElementTree as ET
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote

import requests

from mavenizer.coordinates import MavenCoordinate
from mavenizer.network_utils import create_retry_session, with_retries
from mavenizer.secrets import SecretStr, redact_url

logger = logging.getLogger(__name__)

METADATA_FILENAME = "maven-metadata.xml"


@dataclass(frozen=True)
class RemoteRepository:
    url: str
    id: str = ""
    username: str | None = None
    password: SecretStr | None = None

    @property
    def base_url(self) -> str:
        return self.url if self.url.endswith("/") else self.url + "/"

    def auth(self) -> tuple[str, str] | None:
        if self.username is None:
            return None
        return (self.username, self.password.reveal() if self.password else "")


@dataclass(frozen=True)
class RemoteArtifact:
    url: str
    content: bytes


class RepositoryClient(Protocol):
    def resolve(self, coordinate: MavenCoordinate) -> RemoteArtifact | None: ...

    def list_versions(self, group_id: str, artifact_id: str) -> list[str]: ...

    def remote_repositories(self) -> list[str]: ...

    def probe(self) -> bool: ...


def artifact_path(coordinate: MavenCoordinate, extension: str = "jar") -> str:
    """``org.example:widget:1.0:tests`` -> ``org/example/widget/1.0/widget-1.0-tests.jar``."""
    if coordinate.version is None:
        raise ValueError(f"Coordinate without version has no artifact path: {coordinate}")
    group_path = coordinate.group_id.replace(".", "/")
    filename = f"{coordinate.artifact_id}-{coordinate.version}"
    if coordinate.classifier:
        filename += f"-{coordinate.classifier}"
    return quote(f"{group_path}/{coordinate.artifact_id}/{coordinate.version}/{filename}.{extension}")


def metadata_path(group_id: str, artifact_id: str) -> str:
    return quote(f"{group_id.replace('.', '/')}/{artifact_id}/{METADATA_FILENAME}")


def parse_metadata_versions(content: bytes) -> list[str]:
    """Versions listed in ``maven-metadata.xml``, in document order (oldest first)."""
    root = ET.fromstring(content)
    versions: list[str] = []
    for element in root.iter():
        if _local_name(element.tag) != "versions":
            continue
        for child in element:
            text = (child.text or "").strip()
            if _local_name(child.tag) == "version" and text and text not in versions:
                versions.append(text)
    return versions


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


class MavenHttpRepository:
    """Resolves artifacts and version lists from one or more repositories, in order."""

    def __init__(
        self,
        repositories: Sequence[RemoteRepository],
        *,
        session: requests.Session | None = None,
        timeout_s: float = 30.0,
        max_attempts: int = 3,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.repositories = list(repositories)
        # with_retries owns retrying; the transport must not retry on its own.
        self.session = session or create_retry_session(total_retries=0)
        self.timeout_s = timeout_s
        self.max_attempts = max_attempts
        self.sleep = sleep

    def _fetch(self, repository: RemoteRepository, path: str) -> bytes | None:
        url = repository.base_url + path

        def attempt() -> bytes | None:
            response = self.session.get(url, timeout=self.timeout_s, auth=repository.auth())
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.content

        try:
            return with_retries(attempt, max_attempts=self.max_attempts, sleep=self.sleep)
        except requests.RequestException as exc:
            logger.warning("Request to %s failed: %s", redact_url(url), exc)
            return None

    def resolve(self, coordinate: MavenCoordinate) -> RemoteArtifact | None:
        path = artifact_path(coordinate)
        for repository in self.repositories:
            content = self._fetch(repository, path)
            if content is not None:
                url = repository.base_url + path
                logger.debug("Resolved %s from %s", coordinate, redact_url(url))
                return RemoteArtifact(url=url, content=content)
        logger.debug("Could not resolve %s from any repository", coordinate)
        return None

    def list_versions(self, group_id: str, artifact_id: str) -> list[str]:
        """Known versions of ``group_id:artifact_id``, newest first."""
        path = metadata_path(group_id, artifact_id)
        for repository in self.repositories:
            content = self._fetch(repository, path)
            if content is None:
                continue
            try:
                versions = parse_metadata_versions(content)
            except ET.ParseError as exc:
                logger.warning("Malformed %s for %s:%s: %s", METADATA_FILENAME, group_id, artifact_id, exc)
                continue
            return list(reversed(versions))
        return []

    def remote_repositories(self) -> list[str]:
        return [repository.url for repository in self.repositories]

    def probe(self) -> bool:
        """True if at least one repository answers HTTP at its base URL."""
        for repository in self.repositories:
            try:
                response = self.session.head(
                    repository.base_url, timeout=self.timeout_s, auth=repository.auth(), allow_redirects=True
                )
            except requests.RequestException as exc:
                logger.debug("Probe of %s failed: %s", redact_url(repository.url), exc)
                continue
            if response.status_code < 500:
                return True
        return False
