"""IMAP transport built on ``imapclient``.

What:
  Wrap the third-party ``imapclient`` library as a
  :class:`~mailparts.imap.protocol.Transport`: UID fetches of body structures,
  single parts, header blocks and whole messages, plus rate-limited appends.

Why:
  Direct use of ``imapclient`` leaves every caller to pick fetch items, undo
  ``BODY.PEEK`` naming in responses and translate the nested
  ``BODYSTRUCTURE`` tuples. Centralising this keeps the decoding core free of
  wire details.

How:
  Loads defaults from the runtime configuration, selects the configured
  mailbox read-only on entry, converts fetch responses into bytes and
  :class:`~mailparts.core.structure.BodyStructureNode` trees, and tracks
  ``APPEND`` timestamps to enforce a per-minute action limit. Folder names are
  encoded to modified UTF-7 by ``imapclient`` itself.

Interfaces:
  :class:`ImapConfig`, :class:`ImapTransport`, :func:`structure_from_imap`.

Invariants & Safety:
  - All fetches run in UID mode and use ``BODY.PEEK`` so ``\\Seen`` flags are
    left untouched.
  - Errors raised by ``imapclient`` surface as
    :class:`~mailparts.errors.TransportError`.
"""
from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from email.utils import decode_params
from typing import Any, Deque, List, Optional, Sequence, Tuple

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError

from ..config.loader import get_runtime_config
from ..core.structure import BodyStructureNode, Disposition, MimeType
from ..errors import TransportError
from ..utils.logging import get_logger
from ..utils.mime import param_value


LOGGER = get_logger("mailparts.imap")


@dataclass
class ImapConfig:
    """Connection parameters for an IMAP account.

    What:
      Host credentials plus the mailbox messages are read from.

    Why:
      Operators usually only care about host and login; the mailbox and the
      action limit come from the runtime configuration unless overridden.

    How:
      :meth:`__post_init__` fills unset fields via
      :func:`mailparts.config.loader.get_runtime_config`.

    Attributes:
      host: IMAP hostname.
      username: Login credential.
      password: Password or app-specific token.
      port: IMAP port (defaults to 993).
      ssl: Whether to use TLS.
      folder: Mailbox to select for fetches.
      max_actions_per_minute: Upper bound for mutating commands.
    """

    host: str
    username: str
    password: str
    port: int = 993
    ssl: bool = True
    folder: Optional[str] = None
    max_actions_per_minute: Optional[int] = None

    def __post_init__(self) -> None:
        settings = get_runtime_config()
        if self.folder is None:
            self.folder = settings.imap.default_mailbox
        if self.max_actions_per_minute is None:
            self.max_actions_per_minute = settings.imap.max_actions_per_minute

    def __repr__(self) -> str:
        return (
            f"ImapConfig(host={self.host!r}, username={self.username!r}, port={self.port}, "
            f"ssl={self.ssl}, folder={self.folder!r})"
        )


class ImapTransport:
    """Context manager exposing a rate-limited IMAP transport.

    What:
      Owns a single ``imapclient.IMAPClient`` connection and answers
      :class:`~mailparts.imap.protocol.Transport` queries for the selected
      mailbox.

    Why:
      Ensures every IMAP interaction uses UIDs, peeks instead of marking
      messages read, and respects the configured action limit.

    How:
      Connects in :meth:`__enter__`, selects :attr:`ImapConfig.folder`
      read-only and wraps the fetch/append calls of the underlying client.
    """

    def __init__(self, config: ImapConfig):
        self._config = config
        self._client: Optional[IMAPClient] = None
        self._actions: Deque[float] = deque()

    def __enter__(self) -> "ImapTransport":
        """Connect, log in and select the configured mailbox.

        Raises:
          TransportError: If the connection, login or selection fails.
        """

        try:
            self._client = IMAPClient(self._config.host, port=self._config.port, ssl=self._config.ssl)
            self._client.login(self._config.username, self._config.password)
            self._client.select_folder(self._config.folder, readonly=True)
        except (IMAPClientError, OSError) as exc:
            self._client = None
            raise TransportError(f"IMAP connection to {self._config.host} failed: {exc}") from exc
        LOGGER.info("imap_connected", host=self._config.host, folder=self._config.folder)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._client is None:
            return
        try:
            self._client.logout()
        finally:
            self._client = None

    @property
    def client(self) -> IMAPClient:
        """Underlying ``IMAPClient``; raises ``RuntimeError`` before connecting."""

        if self._client is None:
            raise RuntimeError("IMAP client not connected")
        return self._client

    @property
    def config(self) -> ImapConfig:
        return self._config

    def fetch_body_structure(self, message_id: object) -> BodyStructureNode:
        data = self._fetch(message_id, "BODYSTRUCTURE", b"BODYSTRUCTURE")
        if data is None:
            raise TransportError(f"no body structure for message {message_id!r}")
        return structure_from_imap(data)

    def fetch_part_bytes(self, message_id: object, part_address: str) -> bytes:
        section = part_address or "TEXT"
        data = self._fetch(message_id, f"BODY.PEEK[{section}]", f"BODY[{section}]".encode("ascii"))
        return _as_bytes(data)

    def fetch_headers(self, message_id: object) -> bytes:
        return _as_bytes(self._fetch(message_id, "BODY.PEEK[HEADER]", b"BODY[HEADER]"))

    def fetch_raw_message(self, message_id: object) -> bytes:
        return _as_bytes(self._fetch(message_id, "BODY.PEEK[]", b"BODY[]"))

    def append_raw_message(self, mailbox: str, raw: bytes) -> bool:
        """Append ``raw`` to ``mailbox`` after rate limiting.

        Raises:
          TransportError: If the server rejects the message or the action
            limit is exhausted.
        """

        self._throttle()
        try:
            self.client.append(mailbox, raw)
        except IMAPClientError as exc:
            raise TransportError(f"APPEND to {mailbox!r} failed: {exc}") from exc
        LOGGER.info("imap_appended", mailbox=mailbox, size=len(raw))
        return True

    def _fetch(self, message_id: object, item: str, key: bytes) -> Any:
        try:
            response = self.client.fetch([message_id], [item])
        except IMAPClientError as exc:
            raise TransportError(f"FETCH {item} for message {message_id!r} failed: {exc}") from exc
        data = response.get(message_id)
        if data is None:
            raise TransportError(f"message {message_id!r} not found in {self._config.folder!r}")
        return data.get(key)

    def _throttle(self) -> None:
        """Refuse the action when the per-minute budget is used up."""

        now = time.monotonic()
        while self._actions and now - self._actions[0] > 60:
            self._actions.popleft()
        if len(self._actions) >= (self._config.max_actions_per_minute or 0):
            raise TransportError("IMAP action rate limit exceeded")
        self._actions.append(now)


def structure_from_imap(data: Sequence[Any]) -> BodyStructureNode:
    """Convert an ``imapclient`` ``BODYSTRUCTURE`` response into a node tree.

    What:
      Translates the nested tuples of RFC3501 ``body`` productions.

    Why:
      The decoding core only understands :class:`BodyStructureNode`.

    How:
      A multipart body starts with the list of its parts, followed by the
      subtype and optional extension data (parameters, disposition). A
      single-part body is ``(type, subtype, params, id, description, encoding,
      size, ...)``; the position of the disposition depends on the type
      because TEXT adds a line count and MESSAGE/RFC822 adds envelope, body
      and line count.

    Args:
      data: ``BODYSTRUCTURE`` value as returned by ``IMAPClient.fetch``.

    Returns:
      Root node of the tree.
    """

    if data and isinstance(data[0], list):
        children = tuple(structure_from_imap(part) for part in data[0])
        return BodyStructureNode(
            type=MimeType.MULTIPART,
            subtype=_text(data[1]) or "MIXED",
            parameters=_pairs(data[2]) if len(data) > 2 else [],
            disposition=_disposition(data[3]) if len(data) > 3 else None,
            children=children,
        )
    kind = MimeType.parse(data[0])
    subtype = _text(data[1]) or ""
    if kind is MimeType.TEXT:
        disposition_index = 9
    elif kind is MimeType.MESSAGE and subtype.upper() == "RFC822":
        disposition_index = 11
    else:
        disposition_index = 8
    return BodyStructureNode(
        type=kind,
        subtype=subtype,
        parameters=_pairs(data[2]),
        id=_text(data[3]),
        description=_text(data[4]),
        encoding=_text(data[5]),
        size=int(data[6] or 0),
        disposition=_disposition(data[disposition_index]) if len(data) > disposition_index else None,
    )


def _disposition(value: Any) -> Optional[Disposition]:
    if not value or not isinstance(value, (tuple, list)):
        return None
    kind = _text(value[0])
    if not kind:
        return None
    params = _pairs(value[1]) if len(value) > 1 else []
    return Disposition(type=kind, parameters=params)


def _pairs(value: Any) -> List[Tuple[str, str]]:
    """Flat ``(k1, v1, k2, v2)`` parameter list with RFC2231 values collapsed."""

    if not value or not isinstance(value, (tuple, list)):
        return []
    items = [_text(item) or "" for item in value]
    raw = list(zip(items[0::2], items[1::2]))
    decoded = decode_params([("", "")] + raw)[1:]
    return [(name, param_value(val)) for name, val in decoded]


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _as_bytes(value: Any) -> bytes:
    if value is None:
        return b""
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


__all__ = ["ImapConfig", "ImapTransport", "structure_from_imap"]
