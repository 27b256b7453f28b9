"""Immutable description of a message's MIME body structure.

What:
  Model the body-structure tree a mail store returns for a message: type,
  subtype, parameters, transfer-encoding, size, disposition and nested parts,
  without any content bytes.

Why:
  Decoding works on this tree alone and pulls bytes per leaf on demand. Keeping
  the tree immutable and independent of the transport lets it be built from an
  IMAP ``BODYSTRUCTURE`` response or from a locally parsed message alike.

How:
  :class:`BodyStructureNode` is a frozen dataclass that validates the
  multipart/leaf invariant on construction. :class:`Parameters` is a read-only
  mapping with case-insensitive keys that remembers insertion order and the
  original key spelling.

Interfaces:
  :class:`MimeType`, :class:`Parameters`, :class:`Disposition`,
  :class:`BodyStructureNode`.

Invariants & Safety:
  - MULTIPART nodes always have at least one child and leaves have none.
  - Unknown top-level types become :attr:`MimeType.OTHER` instead of failing.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

from ..errors import InvalidArgumentError
from .transfer import TransferEncoding


class MimeType(str, Enum):
    """Top-level MIME media types."""

    TEXT = "TEXT"
    MULTIPART = "MULTIPART"
    MESSAGE = "MESSAGE"
    APPLICATION = "APPLICATION"
    AUDIO = "AUDIO"
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: Union[str, bytes, "MimeType", None]) -> "MimeType":
        """Case-insensitive lookup; unknown or malformed names yield OTHER."""

        if isinstance(value, MimeType):
            return value
        if isinstance(value, bytes):
            value = value.decode("ascii", errors="replace")
        try:
            return cls((value or "").strip().upper())
        except ValueError:
            return cls.OTHER


class Parameters(Mapping[str, str]):
    """Read-only, ordered parameter mapping with case-insensitive keys."""

    __slots__ = ("_items",)

    def __init__(self, items: Union[None, Mapping[str, str], Iterable[Tuple[str, str]]] = None) -> None:
        pairs = items.items() if isinstance(items, Mapping) else (items or ())
        store: Dict[str, Tuple[str, str]] = {}
        for key, value in pairs:
            store[str(key).lower()] = (str(key), str(value))
        self._items = store

    def __getitem__(self, key: str) -> str:
        return self._items[key.lower()][1]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._items

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return {k.lower(): v for k, v in self.items()} == {
                str(k).lower(): v for k, v in other.items()
            }
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(sorted((k, v) for k, (_, v) in self._items.items())))

    def __repr__(self) -> str:
        return f"Parameters({dict(self.items())!r})"


@dataclass(frozen=True)
class Disposition:
    """``Content-Disposition`` type plus its parameters."""

    type: str
    parameters: Parameters = field(default_factory=Parameters)

    def __post_init__(self) -> None:
        if not isinstance(self.parameters, Parameters):
            object.__setattr__(self, "parameters", Parameters(self.parameters))

    @property
    def is_attachment(self) -> bool:
        return self.type.strip().lower() == "attachment"

    @property
    def is_inline(self) -> bool:
        return self.type.strip().lower() == "inline"


@dataclass(frozen=True)
class BodyStructureNode:
    """One node of the body-structure tree.

    What:
      Captures what the mail store knows about a body part before any of its
      bytes are fetched.

    Why:
      Classification (body text, attachment, inline image) and decoding
      metadata (encoding, charset) are all derived from this description.

    How:
      Frozen dataclass; :meth:`__post_init__` coerces loose inputs (strings,
      dicts, lists) into the canonical types and enforces the multipart/leaf
      invariant.

    Attributes:
      type: Top-level media type.
      subtype: Media subtype, upper-cased.
      parameters: Content-Type parameters such as ``charset`` or ``name``.
      encoding: Declared transfer-encoding.
      size: Encoded size in bytes as reported by the store.
      disposition: Optional ``Content-Disposition``.
      id: Optional ``Content-ID`` as transmitted.
      description: Optional ``Content-Description``.
      children: Nested parts of a MULTIPART node.
    """

    type: MimeType
    subtype: str
    parameters: Parameters = field(default_factory=Parameters)
    encoding: TransferEncoding = TransferEncoding.SEVEN_BIT
    size: int = 0
    disposition: Optional[Disposition] = None
    id: Optional[str] = None
    description: Optional[str] = None
    children: Tuple["BodyStructureNode", ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", MimeType.parse(self.type))
        object.__setattr__(self, "subtype", (self.subtype or "").strip().upper())
        if not isinstance(self.parameters, Parameters):
            object.__setattr__(self, "parameters", Parameters(self.parameters))
        object.__setattr__(self, "encoding", TransferEncoding.parse(self.encoding))
        object.__setattr__(self, "size", int(self.size or 0))
        object.__setattr__(self, "children", tuple(self.children))
        if self.type is MimeType.MULTIPART and not self.children:
            raise InvalidArgumentError("multipart nodes need at least one child part")
        if self.type is not MimeType.MULTIPART and self.children:
            raise InvalidArgumentError(f"{self.mime_type} nodes cannot have child parts")

    @property
    def is_multipart(self) -> bool:
        return self.type is MimeType.MULTIPART

    @property
    def mime_type(self) -> str:
        return f"{self.type.value}/{self.subtype}".lower()

    @property
    def charset(self) -> Optional[str]:
        return self.parameters.get("charset")

    @property
    def content_id(self) -> Optional[str]:
        """``Content-ID`` without surrounding angle brackets and whitespace."""

        if not self.id:
            return None
        return self.id.strip().strip("<>").strip() or None

    @property
    def filename(self) -> Optional[str]:
        """Disposition ``filename`` or, failing that, the type ``name`` parameter."""

        if self.disposition is not None and self.disposition.parameters.get("filename"):
            return self.disposition.parameters["filename"]
        return self.parameters.get("name") or None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly representation used by the CLI."""

        return {
            "type": self.type.value,
            "subtype": self.subtype,
            "parameters": dict(self.parameters.items()),
            "encoding": self.encoding.value,
            "size": self.size,
            "disposition": None
            if self.disposition is None
            else {"type": self.disposition.type, "parameters": dict(self.disposition.parameters.items())},
            "id": self.id,
            "description": self.description,
            "children": [child.to_dict() for child in self.children],
        }


__all__ = ["MimeType", "Parameters", "Disposition", "BodyStructureNode"]
