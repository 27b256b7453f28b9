"""Loaders for the runtime configuration and compose documents.

What:
  Locate, parse and validate ``mailparts.yaml`` and the YAML documents the
  CLI turns into messages.

Why:
  Configuration lives outside the package and can be malformed. Centralising
  the parsing keeps validation strict and error messages consistent, and the
  cache spares every component its own disk read.

How:
  Resolve candidate file locations from an explicit argument, the
  ``MAILPARTS_CONFIG_PATH`` environment variable and well-known defaults.
  Parse YAML with :func:`yaml.safe_load` and validate with the pydantic models
  of :mod:`mailparts.config.schema`.

Interfaces:
  - :func:`load_runtime_config` / :func:`get_runtime_config` /
    :func:`reset_runtime_config`: Manage ``mailparts.yaml`` discovery and
    caching.
  - :func:`load_compose_document`: Parse a compose document.

Invariants:
  - All external payloads pass strict pydantic validation before they are
    returned.
  - An explicitly requested file must exist; only the implicit default
    locations may be absent, in which case built-in defaults apply.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterable, Optional, Tuple

import yaml
from pydantic import ValidationError as _PydanticValidationError

from .schema import ComposeDocument, RuntimeConfig


class ConfigLoadError(Exception):
    """Base error for configuration parsing or validation failures.

    What:
      Represent fatal issues encountered while reading or validating
      configuration documents.

    Why:
      Grouping failures under one type lets the CLI tell user input mistakes
      apart from mail-store or decoding failures.
    """


class RuntimeConfigError(ConfigLoadError):
    """Error raised when ``mailparts.yaml`` cannot be loaded or validated."""


CONFIG_ENV = "MAILPARTS_CONFIG_PATH"
_DEFAULT_LOCATIONS: Tuple[Path, ...] = (
    Path("mailparts.yaml"),
    Path("/etc/mailparts/config.yaml"),
)
_RUNTIME_CACHE: Optional[Tuple[Optional[Path], RuntimeConfig]] = None


def _candidate_paths(path: Optional[Path]) -> Iterable[Tuple[Path, bool]]:
    """Yield ``(path, required)`` pairs in priority order.

    The explicit argument and the environment variable are required to exist;
    the default locations are optional.
    """

    seen: set[Path] = set()
    if path is not None:
        seen.add(path)
        yield path, True
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        candidate = Path(env_path).expanduser()
        if candidate not in seen:
            seen.add(candidate)
            yield candidate, True
    for default in _DEFAULT_LOCATIONS:
        candidate = default.expanduser()
        if candidate not in seen:
            seen.add(candidate)
            yield candidate, False


def _parse_yaml(text: str, source: str) -> dict[str, Any]:
    """Parse YAML text into a mapping.

    Raises:
      ConfigLoadError: If the text is not YAML or not a mapping.
    """

    try:
        payload = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"Invalid YAML in {source}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigLoadError(f"{source} must contain a mapping at the top-level")
    return payload


def _load_runtime_from_path(path: Path) -> RuntimeConfig:
    """Read and validate the runtime configuration stored at ``path``.

    Raises:
      RuntimeConfigError: If the file cannot be read, parsed or validated.
    """

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise RuntimeConfigError(f"Configuration file missing: {path}") from exc
    except OSError as exc:  # pragma: no cover - filesystem surface
        raise RuntimeConfigError(f"Unable to read configuration file {path}: {exc}") from exc
    try:
        payload = _parse_yaml(text, str(path))
    except ConfigLoadError as exc:
        raise RuntimeConfigError(str(exc)) from exc
    try:
        return RuntimeConfig.model_validate(payload)
    except _PydanticValidationError as exc:
        raise RuntimeConfigError(f"Invalid configuration in {path}: {exc}") from exc


def load_runtime_config(
    path: Optional[Path | str] = None,
    *,
    reload: bool = False,
) -> RuntimeConfig:
    """Resolve, parse and cache the runtime configuration.

    What:
      Locate ``mailparts.yaml`` using the precedence chain, parse it and return
      a validated :class:`RuntimeConfig`.

    Why:
      Decoding, composing and the IMAP transport all read settings; caching
      avoids repeated disk IO while ``reload`` allows deterministic refreshes
      in tests.

    How:
      Consult the cache unless ``reload`` is requested or a different explicit
      path is asked for, then walk the candidates. The first existing file
      wins; when none of the optional defaults exists, the schema defaults are
      used.

    Args:
      path: Optional explicit location of the configuration file.
      reload: Force a fresh load bypassing the cache.

    Returns:
      The validated runtime configuration.

    Raises:
      RuntimeConfigError: If a required file is missing or any file is
        invalid.
    """

    global _RUNTIME_CACHE

    requested_path = Path(path).expanduser() if isinstance(path, (str, Path)) else None
    if not reload and _RUNTIME_CACHE is not None:
        cached_path, cached_config = _RUNTIME_CACHE
        if requested_path is None or cached_path == requested_path:
            return cached_config

    for candidate, required in _candidate_paths(requested_path):
        if not candidate.exists():
            if required:
                raise RuntimeConfigError(f"Configuration file missing: {candidate}")
            continue
        config = _load_runtime_from_path(candidate)
        _RUNTIME_CACHE = (candidate, config)
        return config

    config = RuntimeConfig()
    _RUNTIME_CACHE = (None, config)
    return config


def get_runtime_config() -> RuntimeConfig:
    """Return the cached runtime configuration, loading it on demand."""

    return load_runtime_config()


def reset_runtime_config() -> None:
    """Clear the runtime configuration cache."""

    global _RUNTIME_CACHE
    _RUNTIME_CACHE = None


def load_compose_document(source: bytes) -> ComposeDocument:
    """Parse and validate a compose document provided as bytes.

    Args:
      source: UTF-8 YAML bytes, typically read from a file.

    Returns:
      The validated :class:`ComposeDocument`.

    Raises:
      ConfigLoadError: If the payload is not valid YAML or violates the
        schema.
    """

    try:
        text = source.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ConfigLoadError(f"compose document is not UTF-8: {exc}") from exc
    payload = _parse_yaml(text, "compose document")
    try:
        return ComposeDocument.model_validate(payload)
    except _PydanticValidationError as exc:
        raise ConfigLoadError(f"Invalid compose document: {exc}") from exc


__all__ = [
    "CONFIG_ENV",
    "ConfigLoadError",
    "RuntimeConfigError",
    "load_runtime_config",
    "get_runtime_config",
    "reset_runtime_config",
    "load_compose_document",
]
