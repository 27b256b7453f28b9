"""Aggregated exports for the mailparts decode/encode core.

What:
  Provide a package facade over the charset, transfer, date, structure,
  walker, composer and mailbox modules.

Why:
  The configuration schema imports the charset module while the composer and
  mailbox import the configuration loader. Eager re-exports here would turn
  that into an import cycle, so attributes are resolved on first access.

How:
  Defines ``__all__`` explicitly and implements ``__getattr__`` which imports
  the owning submodule on demand and returns the attribute.

Interfaces:
  ``Charset``, ``decode_header_word``, ``TransferEncoding``, ``DataReference``,
  ``parse_datetime``, ``BodyStructureNode``, ``MimeType``, ``Attachment``,
  ``DecodedMessage``, ``BodyTreeWalker``, ``Envelope``, ``BodyPartSpec``,
  ``ComposeSpec``, ``compose``, ``Mailbox``.

Invariants & Safety:
  - ``__getattr__`` only exposes names from ``__all__``; anything else raises
    :class:`AttributeError`.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

_OWNERS = {
    "Charset": "charset",
    "decode_header_word": "charset",
    "normalize_name": "charset",
    "TransferEncoding": "transfer",
    "DataReference": "transfer",
    "decode_transfer": "transfer",
    "parse_datetime": "dates",
    "NormalizedDate": "dates",
    "BodyStructureNode": "structure",
    "Disposition": "structure",
    "MimeType": "structure",
    "Parameters": "structure",
    "Attachment": "models",
    "DecodedMessage": "models",
    "BodyTreeWalker": "walker",
    "PartKind": "walker",
    "classify": "walker",
    "Envelope": "composer",
    "BodyPartSpec": "composer",
    "ComposeSpec": "composer",
    "compose": "composer",
    "Mailbox": "mailbox",
}

__all__ = list(_OWNERS)


def __getattr__(name: str) -> Any:
    """Import the submodule owning ``name`` and return the attribute."""

    owner = _OWNERS.get(name)
    if owner is None:
        raise AttributeError(name)
    return getattr(import_module(f".{owner}", __name__), name)
