"""Contract between the decoding core and the mail store.

What:
  Declare :class:`Transport`, the structural interface every mail-store
  adapter implements.

Why:
  The core never speaks a wire protocol itself. It asks for a body structure,
  for the raw bytes of single parts and for header blocks, and hands finished
  messages back for storage. Keeping that surface small lets the IMAP adapter,
  the in-memory adapter and test doubles be swapped freely.

How:
  A :class:`typing.Protocol` marked ``runtime_checkable`` so adapters need no
  common base class.

Interfaces:
  :class:`Transport`.

Invariants & Safety:
  - ``fetch_part_bytes`` returns the part exactly as stored, still
    transfer-encoded; decoding is the caller's job.
  - Part address ``""`` designates the message body (IMAP ``BODY[TEXT]``).
  - Adapters raise :class:`~mailparts.errors.TransportError` for unknown
    messages or parts.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..core.structure import BodyStructureNode


@runtime_checkable
class Transport(Protocol):
    """Mail-store operations used by the decoding and composing layers."""

    def fetch_body_structure(self, message_id: object) -> BodyStructureNode:
        """Return the body-structure tree of ``message_id``."""

    def fetch_part_bytes(self, message_id: object, part_address: str) -> bytes:
        """Return the raw, still transfer-encoded bytes of one part."""

    def fetch_headers(self, message_id: object) -> bytes:
        """Return the raw header block of ``message_id``."""

    def fetch_raw_message(self, message_id: object) -> bytes:
        """Return the complete message as stored."""

    def append_raw_message(self, mailbox: str, raw: bytes) -> bool:
        """Store ``raw`` in ``mailbox``; ``True`` on success."""


__all__ = ["Transport"]
