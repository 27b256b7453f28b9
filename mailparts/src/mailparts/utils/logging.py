"""Structured JSON logging with redaction of message content.

What:
  Offer a tiny facade over Python streams so every mailparts component can emit
  JSON log lines with consistent fields and automatic removal of message
  content.

Why:
  Decoding and composing touch subjects, bodies and attachment bytes. Logs are
  useful for tracing odd messages, but they must never carry the content of the
  mail they describe nor credentials used to reach the store.

How:
  Provide a :class:`JsonLogger` dataclass bound to a stream and a component
  label. ``extra`` dictionaries are scrubbed by a recursive redaction helper
  before being serialised with ``json.dump``.

Interfaces:
  :class:`JsonLogger`, :func:`get_logger`, :data:`REDACTED`.

Invariants & Safety:
  - Every entry includes an ISO8601 timestamp, severity and component name.
  - Keys in :data:`SENSITIVE_KEYS` are replaced with ``[redacted]`` even inside
    nested dictionaries.
  - Streams are flushed after every write.
"""
from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


REDACTED = "[redacted]"

SENSITIVE_KEYS = frozenset({"subject", "body", "content", "password"})
"""Extra keys whose values never reach a log stream."""


@dataclass
class JsonLogger:
    """Structured JSON logger with automatic redaction.

    What:
      Emits single-line JSON entries with timestamp, severity, component tag
      and optional supplemental fields.

    Why:
      A uniform schema keeps logs greppable and lets tests assert on them
      without parsing free-form strings.

    How:
      Stores the destination stream and component label; :meth:`info`,
      :meth:`warning` and :meth:`error` forward to :meth:`log`, which merges a
      redacted copy of the extras into the canonical payload.
    """

    stream: Any = field(default_factory=lambda: sys.stderr)
    component: str = "mailparts"

    def log(self, level: str, message: str, *, extra: Optional[Dict[str, Any]] = None) -> None:
        """Emit one JSON entry.

        Args:
          level: Severity name, upper-cased in the output.
          message: Short event name such as ``"boundary_collision"``.
          extra: Optional context, redacted recursively.
        """

        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "lvl": level.upper(),
            "msg": message,
            "component": self.component,
        }
        if extra:
            payload.update(self._redact(extra))
        json.dump(payload, self.stream, separators=(",", ":"), default=str)
        self.stream.write("\n")
        self.stream.flush()

    def info(self, message: str, **kwargs: Any) -> None:
        self.log("INFO", message, extra=kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.log("WARN", message, extra=kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self.log("ERROR", message, extra=kwargs)

    @staticmethod
    def _redact(data: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``data`` with sensitive values masked."""

        result: Dict[str, Any] = {}
        for key, value in data.items():
            if key in SENSITIVE_KEYS:
                result[key] = REDACTED
            elif isinstance(value, dict):
                result[key] = JsonLogger._redact(value)
            else:
                result[key] = value
        return result


def get_logger(component: str) -> JsonLogger:
    """Return a :class:`JsonLogger` for ``component`` writing to ``stderr``.

    The stream is resolved when the entry is written so that test harnesses
    replacing ``sys.stderr`` see the output.
    """

    return JsonLogger(stream=_StderrProxy(), component=component)


class _StderrProxy:
    def write(self, text: str) -> int:
        return sys.stderr.write(text)

    def flush(self) -> None:
        sys.stderr.flush()


__all__ = ["REDACTED", "SENSITIVE_KEYS", "JsonLogger", "get_logger"]
