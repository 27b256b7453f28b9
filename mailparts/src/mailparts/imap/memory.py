"""In-memory transport over raw RFC822 messages.

What:
  Keep raw messages in a dictionary and answer every
  :class:`~mailparts.imap.protocol.Transport` query from them, including
  appends.

Why:
  Decoding ``.eml`` files, running the compose/decode round trip and testing
  the core all need a mail store without a server.

How:
  Body structures come from :func:`mailparts.utils.mime.structure_from_message`
  and part bytes from :func:`mailparts.utils.mime.part_payload`, so part
  numbering follows IMAP. Appended messages get the next integer id.

Interfaces:
  :class:`MemoryTransport`.

Invariants & Safety:
  - Stored bytes are never modified; reads always reflect the appended octets.
  - Unknown ids raise :class:`~mailparts.errors.TransportError`.
"""
from __future__ import annotations

import threading
from typing import Dict, List, Mapping, Optional, Tuple

from ..core.structure import BodyStructureNode
from ..errors import TransportError
from ..utils.mime import parse_message, part_payload, split_header_block, structure_from_message


class MemoryTransport:
    """Dictionary-backed mail store.

    Args:
      messages: Optional initial ``id -> raw bytes`` mapping.
      mailbox: Mailbox name initial messages belong to.
    """

    def __init__(self, messages: Optional[Mapping[object, bytes]] = None, mailbox: str = "INBOX") -> None:
        self._messages: Dict[object, bytes] = {}
        self._mailboxes: Dict[object, str] = {}
        self._lock = threading.Lock()
        self.appended: List[Tuple[str, object]] = []
        for message_id, raw in (messages or {}).items():
            self._messages[message_id] = bytes(raw)
            self._mailboxes[message_id] = mailbox

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._messages

    def __len__(self) -> int:
        return len(self._messages)

    def add(self, raw: bytes, mailbox: str = "INBOX") -> int:
        """Store ``raw`` under a fresh integer id and return the id."""

        with self._lock:
            numeric = [key for key in self._messages if isinstance(key, int)]
            message_id = max(numeric, default=0) + 1
            self._messages[message_id] = bytes(raw)
            self._mailboxes[message_id] = mailbox
        return message_id

    def mailbox_of(self, message_id: object) -> str:
        self._raw(message_id)
        return self._mailboxes[message_id]

    def fetch_body_structure(self, message_id: object) -> BodyStructureNode:
        return structure_from_message(parse_message(self._raw(message_id)))

    def fetch_part_bytes(self, message_id: object, part_address: str) -> bytes:
        return part_payload(self._raw(message_id), part_address)

    def fetch_headers(self, message_id: object) -> bytes:
        return split_header_block(self._raw(message_id))[0]

    def fetch_raw_message(self, message_id: object) -> bytes:
        return self._raw(message_id)

    def append_raw_message(self, mailbox: str, raw: bytes) -> bool:
        message_id = self.add(raw, mailbox)
        self.appended.append((mailbox, message_id))
        return True

    def _raw(self, message_id: object) -> bytes:
        try:
            return self._messages[message_id]
        except KeyError:
            raise TransportError(f"unknown message id {message_id!r}") from None


__all__ = ["MemoryTransport"]
