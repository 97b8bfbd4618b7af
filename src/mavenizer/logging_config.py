"""Log setup for mavenizer runs.

Every line is tagged with the jar being analyzed and scrubbed of repository
credentials before it reaches the handler.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import time
from collections.abc import Iterator
from typing import IO, Any

from mavenizer.secrets import redact_string, redact_structure

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

_CONFIGURED = False

# Worker threads do not inherit this; verification binds it per task.
_current_jar: contextvars.ContextVar[str | None] = contextvars.ContextVar("mavenizer_jar", default=None)


def current_jar() -> str | None:
    return _current_jar.get()


@contextlib.contextmanager
def jar_context(name: str) -> Iterator[None]:
    token = _current_jar.set(name)
    try:
        yield
    finally:
        _current_jar.reset(token)


def _redacted_message(record: logging.LogRecord) -> str:
    msg = redact_structure(record.msg)
    args = redact_structure(record.args)
    if args:
        try:
            return redact_string(str(msg) % args)
        except (TypeError, ValueError):
            return redact_string(str(msg))
    return redact_string(str(msg))


class TextFormatter(logging.Formatter):
    """``time | level | logger | message [jar]`` in UTC."""

    converter = time.gmtime

    def __init__(self) -> None:
        super().__init__("%(asctime)s | %(levelname)s | %(name)s | %(message)s")

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        jar = current_jar()
        return f"{line} [{jar}]" if jar else line

    def format(self, record: logging.LogRecord) -> str:
        record.message = _redacted_message(record)
        if self.usesTime():
            record.asctime = self.formatTime(record, self.datefmt)
        text = self.formatMessage(record)
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return redact_string(text)


class JsonFormatter(logging.Formatter):
    converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": _redacted_message(record),
        }
        jar = current_jar()
        if jar:
            payload["jar"] = jar
        if record.exc_info:
            payload["exc_info"] = redact_string(self.formatException(record.exc_info))
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(*, level: str = "WARNING", fmt: str = "text", stream: IO[str] | None = None) -> None:
    """Install a single redacting handler on the root logger.

    Console output of the analysis goes to stdout; log lines default to
    stderr so the two never interleave inside one stream.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    root = logging.getLogger()
    root.setLevel(level.upper())
    if not root.handlers:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(JsonFormatter() if fmt == "json" else TextFormatter())
        root.addHandler(handler)

    # urllib3 logs every retry at WARNING; keep it at our level or above.
    logging.getLogger("urllib3").setLevel(max(root.level, logging.WARNING))
    _CONFIGURED = True


def add_logging_args(parser: Any) -> None:
    parser.add_argument(
        "--log-level",
        default="WARNING",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Logging level (default: WARNING)",
    )
    parser.add_argument(
        "--log-format",
        default="text",
        choices=["text", "json"],
        help="Logging format (default: text)",
    )
