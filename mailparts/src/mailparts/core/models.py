"""Decoded message and attachment records.

What:
  Plain records describing the outcome of decoding a message: header values,
  body texts and the attachments found in its body structure.

Why:
  Callers should get a stable, typed result that no longer depends on the
  body-structure tree. Attachment bytes stay behind a lazy reference so that a
  message with many large attachments costs nothing until content is read.

How:
  :class:`Attachment` and :class:`DecodedMessage` are mutable dataclasses filled
  in by :mod:`mailparts.core.walker`. Attachment content is reachable only
  through a bound :class:`~mailparts.core.transfer.DataReference`.

Interfaces:
  :class:`Attachment`, :class:`DecodedMessage`.

Invariants & Safety:
  - :meth:`Attachment.get_contents` never returns stale or foreign bytes; it
    raises until a reference is bound.
  - :meth:`DecodedMessage.get_attachments` returns a copy so callers cannot
    reorder the message's own list.
"""
from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..errors import DataNotYetAttachedError
from .transfer import DataReference

_SIGNATURES: Tuple[Tuple[bytes, str], ...] = (
    (b"%PDF-", "application/pdf"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"PK\x03\x04", "application/zip"),
    (b"\x1f\x8b", "application/gzip"),
)

_GENERIC_TYPES = frozenset({"application/octet-stream", "binary/octet-stream"})


@dataclass
class Attachment:
    """Attachment or inline part of a decoded message.

    Attributes:
      id: Stable identifier within the message (content id or part address).
      content_id: ``Content-ID`` without angle brackets, if any.
      name: Decoded file name from the disposition or type parameters.
      disposition: Lower-cased disposition type (``attachment``/``inline``).
      charset: Declared charset for text attachments.
      mime_type: ``type/subtype`` in lower case.
      eml_origin: Whether the part is an embedded ``message/*``.
      size: Encoded size as reported by the store.
      part_address: Dotted part path inside the message.
    """

    id: str
    content_id: Optional[str] = None
    name: Optional[str] = None
    disposition: Optional[str] = None
    charset: Optional[str] = None
    mime_type: str = "application/octet-stream"
    eml_origin: bool = False
    size: int = 0
    part_address: str = ""
    _reference: Optional[DataReference] = field(default=None, repr=False, compare=False)
    _file_path: Optional[Path] = field(default=None, repr=False, compare=False)
    _detected_type: Optional[str] = field(default=None, repr=False, compare=False)

    def add_data_reference(self, reference: DataReference) -> None:
        """Bind the lazy content handle; rebinding replaces the previous one."""

        self._reference = reference

    @property
    def has_data_reference(self) -> bool:
        return self._reference is not None

    def get_contents(self) -> bytes:
        """Return the transfer-decoded attachment bytes.

        Raises:
          DataNotYetAttachedError: If no data reference has been bound.
        """

        if self._reference is None:
            raise DataNotYetAttachedError(f"attachment {self.id!r} has no data reference")
        return self._reference.fetch()

    def get_mime_type(self) -> str:
        """Return the media type, sniffed from the content on first call.

        Well-known signatures in the decoded bytes win over the declared
        type. A generic declared type falls back to a guess from the file
        name. The answer is cached; content is fetched at most once.

        Raises:
          DataNotYetAttachedError: If no data reference has been bound.
        """

        if self._detected_type is None:
            self._detected_type = self._sniff_mime_type()
        return self._detected_type

    def _sniff_mime_type(self) -> str:
        head = self.get_contents()[:16]
        for signature, mime_type in _SIGNATURES:
            if head.startswith(signature):
                return mime_type
        if self.mime_type in _GENERIC_TYPES and self.name:
            guessed, _ = mimetypes.guess_type(self.name)
            if guessed:
                return guessed
        return self.mime_type

    def set_file_path(self, path: Union[str, Path]) -> None:
        self._file_path = Path(path)

    def get_file_path(self) -> Optional[Path]:
        return self._file_path

    def is_file_path_set(self) -> bool:
        return self._file_path is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content_id": self.content_id,
            "name": self.name,
            "disposition": self.disposition,
            "charset": self.charset,
            "mime_type": self.mime_type,
            "eml_origin": self.eml_origin,
            "size": self.size,
            "part_address": self.part_address,
        }


@dataclass
class DecodedMessage:
    """Typed view of a decoded message.

    What:
      Holds decoded header strings, normalised date, body texts and attachments.

    Why:
      Serves as the single return type of
      :meth:`mailparts.core.mailbox.Mailbox.get_mail` and the CLI ``decode``
      command so that both expose the same fields.

    How:
      Filled in by :func:`mailparts.core.walker.build_message`; it holds no
      reference to the body-structure tree it was built from.
    """

    message_id: object
    header_message_id: Optional[str] = None
    subject: Optional[str] = None
    from_: Optional[str] = None
    from_name: Optional[str] = None
    from_address: Optional[str] = None
    to: Optional[str] = None
    cc: Optional[str] = None
    bcc: Optional[str] = None
    reply_to: Optional[str] = None
    to_list: List[str] = field(default_factory=list)
    cc_list: List[str] = field(default_factory=list)
    bcc_list: List[str] = field(default_factory=list)
    date: Optional[str] = None
    date_normalized: Optional[str] = None
    text_plain: Optional[str] = None
    text_html: Optional[str] = None
    attachments: List[Attachment] = field(default_factory=list)
    has_attachments: bool = False
    headers: Dict[str, str] = field(default_factory=dict)

    def get_attachments(self) -> List[Attachment]:
        return list(self.attachments)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly summary without attachment contents."""

        message_id = self.message_id
        if isinstance(message_id, bytes):
            message_id = message_id.decode("ascii", errors="replace")
        return {
            "message_id": message_id,
            "header_message_id": self.header_message_id,
            "subject": self.subject,
            "from": self.from_,
            "from_name": self.from_name,
            "from_address": self.from_address,
            "to": self.to_list,
            "cc": self.cc_list,
            "bcc": self.bcc_list,
            "reply_to": self.reply_to,
            "date": self.date,
            "date_normalized": self.date_normalized,
            "text_plain": self.text_plain,
            "text_html": self.text_html,
            "has_attachments": self.has_attachments,
            "attachments": [attachment.to_dict() for attachment in self.attachments],
        }


__all__ = ["Attachment", "DecodedMessage"]
