from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass
class MavenizerError(Exception):
    message: str
    code: str = "mavenizer_error"
    context: dict[str, Any] = field(default_factory=dict)

    def __init__(self, message: str, *, code: str | None = None, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.code
        self.context = dict(context or {})

    def __str__(self) -> str:
        return self.message

    def as_log_fields(self) -> dict[str, Any]:
        return {
            "error_code": self.code,
            "error_message": self.message,
            "error_context": self.context,
        }


class ConfigValidationError(MavenizerError):
    code = "config_validation_error"


class JarReadError(MavenizerError):
    code = "jar_read_error"

    def __init__(self, message: str, *, jar: str) -> None:
        super().__init__(message, context={"jar": jar})


class RepositoryUnreachableError(MavenizerError):
    code = "repository_unreachable"

    def __init__(self, message: str, *, repositories: list[str] | None = None) -> None:
        super().__init__(message, context={"repositories": list(repositories or [])})


class SettingsDiscoveryError(MavenizerError):
    code = "settings_discovery_error"


class ManifestFormatError(MavenizerError):
    code = "manifest_format_error"
