"""mailparts configuration package.

What:
  Provide one import surface for configuration loading and the pydantic schema
  classes used by the runtime and the CLI.

Why:
  Callers should not depend on the internal split between loader and schema
  modules, and must go through validation before touching YAML payloads.

How:
  Re-export the loader helpers and schema classes; ``__all__`` stays explicit.

Interfaces:
  - get_runtime_config / load_runtime_config / reset_runtime_config: Resolve
    ``mailparts.yaml`` and expose a cached runtime configuration object.
  - load_compose_document: Parse YAML compose documents.
  - RuntimeConfig / CodecSettings / ComposeSettings / ImapSettings /
    ComposeDocument / ValidationError: Pydantic models and error type.
"""

from .loader import (
    ConfigLoadError,
    RuntimeConfigError,
    get_runtime_config,
    load_compose_document,
    load_runtime_config,
    reset_runtime_config,
)
from .schema import (
    CodecSettings,
    ComposeDocument,
    ComposeSettings,
    ImapSettings,
    RuntimeConfig,
    ValidationError,
)

__all__ = [
    "ConfigLoadError",
    "RuntimeConfigError",
    "get_runtime_config",
    "load_runtime_config",
    "reset_runtime_config",
    "load_compose_document",
    "CodecSettings",
    "ComposeDocument",
    "ComposeSettings",
    "ImapSettings",
    "RuntimeConfig",
    "ValidationError",
]
