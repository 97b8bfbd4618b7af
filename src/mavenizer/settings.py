"""Discovery of remote repositories from Maven's effective settings."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
import xml.etree.ElementTree as ET
from collections.abc import Callable, Sequence
from pathlib import Path

from mavenizer.exceptions import SettingsDiscoveryError
from mavenizer.repository import RemoteRepository
from mavenizer.secrets import SecretStr

logger = logging.getLogger(__name__)

CommandRunner = Callable[[list[str]], str]


def mvn_executable() -> str:
    return "mvn.cmd" if os.name == "nt" else "mvn"


def run_cmd(cmd: list[str], cwd: Path | None = None) -> str:
    """Run a command and return its combined stdout/stderr.

    Raises:
        subprocess.CalledProcessError: If the command exits with non-zero status.
        FileNotFoundError: If the executable is not on PATH.
    """
    p = subprocess.run(
        cmd,
        cwd=str(cwd) if cwd else None,
        check=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
    )
    return p.stdout.decode("utf-8", errors="ignore")


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element | None, name: str) -> list[ET.Element]:
    if element is None:
        return []
    return [child for child in element if _local_name(child.tag) == name]


def _child(element: ET.Element | None, name: str) -> ET.Element | None:
    found = _children(element, name)
    return found[0] if found else None


def _text(element: ET.Element | None, name: str) -> str | None:
    child = _child(element, name)
    if child is None or child.text is None:
        return None
    return child.text.strip() or None


def parse_settings(content: bytes | str) -> list[RemoteRepository]:
    """Repositories of active profiles in a ``settings.xml`` document.

    A profile is active when ``<activeByDefault>true</activeByDefault>`` or when
    its id is listed under ``<activeProfiles>``. Credentials come from the
    ``<server>`` whose id matches the repository id.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        raise SettingsDiscoveryError(f"Malformed Maven settings: {exc}") from exc

    # effective-settings output may wrap <settings> in other elements
    if _local_name(root.tag) != "settings":
        root = next((e for e in root.iter() if _local_name(e.tag) == "settings"), root)

    active_ids = {
        (e.text or "").strip() for e in _children(_child(root, "activeProfiles"), "activeProfile")
    }
    servers = {
        _text(server, "id"): server for server in _children(_child(root, "servers"), "server")
    }

    repositories: list[RemoteRepository] = []
    for profile in _children(_child(root, "profiles"), "profile"):
        activation = _child(profile, "activation")
        active_by_default = (_text(activation, "activeByDefault") or "").lower() == "true"
        if not active_by_default and _text(profile, "id") not in active_ids:
            continue
        for repo in _children(_child(profile, "repositories"), "repository"):
            url = _text(repo, "url")
            if not url:
                continue
            repo_id = _text(repo, "id") or ""
            server = servers.get(repo_id)
            username = _text(server, "username") if server is not None else None
            password = _text(server, "password") if server is not None else None
            repositories.append(
                RemoteRepository(
                    url=url,
                    id=repo_id,
                    username=username,
                    password=SecretStr(password) if password is not None else None,
                )
            )
    return repositories


def with_central(repositories: Sequence[RemoteRepository], central_url: str) -> list[RemoteRepository]:
    """De-duplicate by URL and append Maven Central unless already present."""
    result: list[RemoteRepository] = []
    seen: set[str] = set()
    for repository in [*repositories, RemoteRepository(url=central_url, id="central")]:
        key = repository.base_url
        if key in seen:
            continue
        seen.add(key)
        result.append(repository)
    return result


def discover_repositories(
    central_url: str,
    *,
    runner: CommandRunner = run_cmd,
    workdir: Path | None = None,
) -> list[RemoteRepository]:
    """Ask ``mvn help:effective-settings`` for the configured repositories.

    When Maven is unavailable or fails, only Maven Central is returned.
    """
    executable = mvn_executable()
    if runner is run_cmd and shutil.which(executable) is None:
        logger.warning("'%s' not found on PATH; using Maven Central only", executable)
        return with_central([], central_url)

    with tempfile.TemporaryDirectory(prefix="mavenizer-settings-", dir=workdir) as tmp:
        output = Path(tmp) / "effective-settings.xml"
        cmd = [executable, "help:effective-settings", "-DshowPasswords=true", f"-Doutput={output}"]
        logger.debug("Reading remote repository configuration via %s", " ".join(cmd[:2]))
        try:
            runner(cmd)
            content = output.read_bytes()
        except (subprocess.CalledProcessError, OSError) as exc:
            logger.warning("'mvn help:effective-settings' failed (%s); using Maven Central only", exc)
            return with_central([], central_url)

    repositories = with_central(parse_settings(content), central_url)
    logger.debug("Discovered %d remote repositories", len(repositories))
    return repositories
