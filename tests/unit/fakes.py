"""In-memory doubles used by unit tests.

What:
  Provide a drop-in replacement for :class:`imapclient.IMAPClient` covering the
  calls :class:`mailparts.imap.client.ImapTransport` makes, and a transport
  serving canned part bytes while counting fetches.

Why:
  Unit tests must exercise fetch, append and lazy-loading behaviour without
  contacting real servers, and need to assert exactly how often the store was
  hit.

How:
  :class:`FakeImapBackend` keeps per-mailbox dictionaries of raw messages and
  canned ``BODYSTRUCTURE`` tuples and answers ``BODY[...]`` sections with the
  helpers from :mod:`mailparts.utils.mime`. :class:`CountingTransport` maps
  part addresses to bytes and records every call.

Interfaces:
  :class:`FakeImapBackend`, :class:`CountingTransport`.

Invariants & Safety:
  - UIDs increment monotonically per backend instance.
  - Methods avoid network calls and operate solely on in-memory data.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from imapclient.exceptions import IMAPClientError

from mailparts.core.structure import BodyStructureNode
from mailparts.errors import TransportError
from mailparts.utils.mime import part_payload, split_header_block


@dataclass
class _StoredMessage:
    uid: int
    raw: bytes
    structure: Any


class FakeImapBackend:
    """Minimal IMAP backend satisfying the subset the transport relies upon."""

    def __init__(self) -> None:
        self.mailboxes: Dict[str, Dict[int, _StoredMessage]] = {"INBOX": {}}
        self.selected: Optional[str] = None
        self.readonly: Optional[bool] = None
        self.logged_in: Optional[Tuple[str, str]] = None
        self.logged_out = False
        self.fetch_calls: List[Tuple[Tuple[int, ...], Tuple[str, ...]]] = []
        self.appended: List[Tuple[str, bytes]] = []
        self.fail_with: Optional[Exception] = None
        self._uid = 0

    def add(self, raw: bytes, structure: Any = None, mailbox: str = "INBOX") -> int:
        self._uid += 1
        self.mailboxes.setdefault(mailbox, {})[self._uid] = _StoredMessage(self._uid, raw, structure)
        return self._uid

    def login(self, username: str, password: str) -> None:
        self.logged_in = (username, password)

    def logout(self) -> None:
        self.logged_out = True

    def select_folder(self, name: str, readonly: bool = False) -> Dict[bytes, Any]:
        if name not in self.mailboxes:
            raise IMAPClientError(f"select failed: no such mailbox {name}")
        self.selected = name
        self.readonly = readonly
        return {b"EXISTS": len(self.mailboxes[name])}

    def fetch(self, uids: Iterable[int], items: Iterable[str]) -> Dict[int, Dict[bytes, Any]]:
        if self.fail_with is not None:
            raise self.fail_with
        uids = tuple(uids)
        items = tuple(items)
        self.fetch_calls.append((uids, items))
        response: Dict[int, Dict[bytes, Any]] = {}
        for uid in uids:
            stored = self.mailboxes[self.selected or "INBOX"].get(uid)
            if stored is None:
                continue
            entry: Dict[bytes, Any] = {b"SEQ": uid}
            for item in items:
                if item == "BODYSTRUCTURE":
                    entry[b"BODYSTRUCTURE"] = stored.structure
                    continue
                section = item[item.index("[") + 1 : item.rindex("]")]
                entry[f"BODY[{section}]".encode("ascii")] = self._section(stored.raw, section)
            response[uid] = entry
        return response

    def append(self, folder: str, msg: bytes, flags: Iterable[str] = (), msg_time: Any = None) -> bytes:
        if self.fail_with is not None:
            raise self.fail_with
        self.appended.append((folder, msg))
        self.add(msg, mailbox=folder)
        return b"APPEND completed"

    @staticmethod
    def _section(raw: bytes, section: str) -> bytes:
        if section == "":
            return raw
        if section == "HEADER":
            return split_header_block(raw)[0]
        if section == "TEXT":
            return split_header_block(raw)[1]
        return part_payload(raw, section)


class CountingTransport:
    """Transport serving canned part bytes and recording every fetch.

    Args:
      parts: ``part address -> raw bytes`` for a single message.
      structure: Body structure returned by :meth:`fetch_body_structure`.
      headers: Raw header block.
      delay: Seconds to sleep inside each part fetch, to widen race windows.
    """

    def __init__(
        self,
        parts: Optional[Dict[str, bytes]] = None,
        structure: Optional[BodyStructureNode] = None,
        headers: bytes = b"",
        delay: float = 0.0,
    ) -> None:
        self.parts = dict(parts or {})
        self.structure = structure
        self.headers = headers
        self.delay = delay
        self.part_calls: List[Tuple[object, str]] = []
        self.appended: List[Tuple[str, bytes]] = []
        self._lock = threading.Lock()

    def fetch_body_structure(self, message_id: object) -> BodyStructureNode:
        if self.structure is None:
            raise TransportError("no structure configured")
        return self.structure

    def fetch_part_bytes(self, message_id: object, part_address: str) -> bytes:
        with self._lock:
            self.part_calls.append((message_id, part_address))
        if self.delay:
            time.sleep(self.delay)
        try:
            return self.parts[part_address]
        except KeyError:
            raise TransportError(f"no part {part_address!r}") from None

    def fetch_headers(self, message_id: object) -> bytes:
        return self.headers

    def fetch_raw_message(self, message_id: object) -> bytes:
        return self.headers + b"".join(self.parts.values())

    def append_raw_message(self, mailbox: str, raw: bytes) -> bool:
        self.appended.append((mailbox, raw))
        return True

    def calls_for(self, part_address: str) -> int:
        return sum(1 for _, address in self.part_calls if address == part_address)
