"""Body-structure traversal, part classification and message assembly.

What:
  Walk a :class:`~mailparts.core.structure.BodyStructureNode` tree in
  pre-order, decide for each leaf whether it is the plain-text body, the HTML
  body, an inline resource or an attachment, and assemble a
  :class:`~mailparts.core.models.DecodedMessage` from the result and the
  message headers.

Why:
  The classification rules decide what a user sees as "the message" and what
  appears as an attachment. They must be applied identically whether the tree
  came from an IMAP server or from a local ``.eml`` file.

How:
  :func:`iter_parts` yields ``(address, node)`` pairs using IMAP part
  numbering. :func:`classify` applies the ordered rules to a single node.
  :class:`BodyTreeWalker` binds a :class:`~mailparts.core.transfer.DataReference`
  to each interesting leaf; text bodies are fetched immediately, attachment
  content stays lazy. :func:`build_message` adds decoded headers and the
  normalised date.

Interfaces:
  :class:`PartKind`, :func:`classify`, :func:`iter_parts`,
  :func:`has_attachments`, :class:`WalkResult`, :class:`BodyTreeWalker`,
  :func:`build_message`.

Invariants & Safety:
  - The first TEXT/PLAIN and the first TEXT/HTML leaf in pre-order win; later
    ones are neither fetched nor exposed.
  - Unknown media types never abort decoding; they are logged and handled as
    attachments.
  - Every attachment owns its own data reference and cache.
  - The line break closing a single-part message is not part of its body.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from email.parser import BytesHeaderParser
from email.policy import compat32
from email.utils import getaddresses, parseaddr
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Tuple, Union

from ..utils.logging import get_logger
from .charset import Charset, decode_header_word, normalize_name
from .dates import parse_datetime
from .models import Attachment, DecodedMessage
from .structure import BodyStructureNode, MimeType
from .transfer import DataReference

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..imap.protocol import Transport


LOGGER = get_logger("mailparts.walker")

_FOLD = re.compile(r"\r?\n(?=[ \t])")


class PartKind(str, Enum):
    """Role of a body part within a message."""

    TEXT_BODY = "text_body"
    HTML_BODY = "html_body"
    ATTACHMENT = "attachment"
    INLINE = "inline"
    CONTAINER = "container"


def classify(node: BodyStructureNode, *, is_root: bool = False) -> PartKind:
    """Return the :class:`PartKind` of ``node``.

    What:
      Applies the ordered classification rules to a single node.

    Why:
      Mail clients disagree on how inline images and text attachments are
      marked. A fixed rule order gives the same answer for every message:

      1. MULTIPART nodes are containers.
      2. An explicit ``attachment`` disposition always wins.
      3. Embedded ``message/*`` parts are attachments.
      4. Non-text leaves with a content id or ``inline`` disposition are
         inline resources; other non-text leaves are attachments.
      5. Text leaves with a content id are inline unless they are the root.
      6. TEXT/PLAIN and TEXT/HTML are bodies; other text subtypes are
         attachments.

    Args:
      node: Node to classify.
      is_root: Whether ``node`` is the message's top-level part.

    Returns:
      The part kind.
    """

    if node.is_multipart:
        return PartKind.CONTAINER
    disposition = node.disposition
    if disposition is not None and disposition.is_attachment:
        return PartKind.ATTACHMENT
    if node.type is MimeType.MESSAGE:
        return PartKind.ATTACHMENT
    if node.type is not MimeType.TEXT:
        if node.content_id or (disposition is not None and disposition.is_inline):
            return PartKind.INLINE
        return PartKind.ATTACHMENT
    if node.content_id and not is_root:
        return PartKind.INLINE
    if node.subtype == "PLAIN":
        return PartKind.TEXT_BODY
    if node.subtype == "HTML":
        return PartKind.HTML_BODY
    return PartKind.ATTACHMENT


def iter_parts(root: BodyStructureNode, address: str = "") -> Iterator[Tuple[str, BodyStructureNode]]:
    """Yield ``(address, node)`` pairs in pre-order.

    The root has address ``""``; its children are ``"1"``, ``"2"`` and so on,
    grandchildren ``"1.1"``, ``"1.2"``.
    """

    yield address, root
    for index, child in enumerate(root.children, start=1):
        child_address = f"{address}.{index}" if address else str(index)
        yield from iter_parts(child, child_address)


def has_attachments(root: BodyStructureNode) -> bool:
    """Whether any leaf of ``root`` is an attachment or inline resource."""

    for address, node in iter_parts(root):
        if classify(node, is_root=address == "") in (PartKind.ATTACHMENT, PartKind.INLINE):
            return True
    return False


@dataclass
class WalkResult:
    """Bodies and attachments collected by :meth:`BodyTreeWalker.walk`."""

    text_plain: Optional[str] = None
    text_html: Optional[str] = None
    attachments: List[Attachment] = field(default_factory=list)


class BodyTreeWalker:
    """Decode the parts of one message described by a body-structure tree.

    What:
      Turns the leaves of a tree into body texts and lazily readable
      attachments for a single message held by ``transport``.

    Why:
      Bodies are needed for almost every use of a message and are fetched up
      front. Attachments are frequently ignored and are only fetched when
      their content is requested.

    How:
      Iterates :func:`iter_parts`, classifies every node and binds a
      :class:`DataReference` per relevant leaf. When ``attachments_ignore`` is
      set, attachment leaves are skipped entirely.

    Args:
      transport: Source of part bytes.
      message_id: Identifier understood by ``transport``.
      server_encoding: Charset body texts are converted into.
      attachments_ignore: Skip attachment leaves instead of recording them.
    """

    def __init__(
        self,
        transport: "Transport",
        message_id: object,
        server_encoding: Union[str, Charset] = Charset.UTF_8,
        attachments_ignore: bool = False,
    ) -> None:
        self._transport = transport
        self._message_id = message_id
        self._server_encoding = normalize_name(server_encoding)
        self._attachments_ignore = attachments_ignore

    def walk(self, root: BodyStructureNode) -> WalkResult:
        result = WalkResult()
        skipped = 0
        for address, node in iter_parts(root):
            if node.type is MimeType.OTHER:
                LOGGER.warning(
                    "unknown_media_type",
                    message_id=str(self._message_id),
                    part=address or "TEXT",
                    subtype=node.subtype,
                )
            kind = classify(node, is_root=address == "")
            if kind is PartKind.CONTAINER:
                continue
            if kind is PartKind.TEXT_BODY:
                if result.text_plain is None:
                    result.text_plain = self._text_reference(address, node).text()
            elif kind is PartKind.HTML_BODY:
                if result.text_html is None:
                    result.text_html = self._text_reference(address, node).text()
            elif self._attachments_ignore:
                skipped += 1
            else:
                result.attachments.append(self._attachment(address, node, kind))
        if skipped:
            LOGGER.info("attachments_ignored", message_id=str(self._message_id), count=skipped)
        return result

    def _text_reference(self, address: str, node: BodyStructureNode) -> DataReference:
        return DataReference(
            self._transport,
            self._message_id,
            address,
            encoding=node.encoding,
            charset=node.charset,
            is_text=True,
            server_encoding=self._server_encoding,
            trim_final_newline=address == "",
        )

    def _attachment(self, address: str, node: BodyStructureNode, kind: PartKind) -> Attachment:
        if node.disposition is not None:
            disposition = node.disposition.type.strip().lower()
        else:
            disposition = "inline" if kind is PartKind.INLINE else "attachment"
        attachment = Attachment(
            id=node.content_id or address or "1",
            content_id=node.content_id,
            name=_decode_optional(node.filename),
            disposition=disposition,
            charset=node.charset,
            mime_type=node.mime_type,
            eml_origin=node.type is MimeType.MESSAGE,
            size=node.size,
            part_address=address,
        )
        attachment.add_data_reference(
            DataReference(
                self._transport,
                self._message_id,
                address,
                encoding=node.encoding,
                charset=node.charset,
                is_text=False,
                server_encoding=self._server_encoding,
                trim_final_newline=address == "",
            )
        )
        return attachment


def build_message(
    message_id: object,
    raw_headers: bytes,
    root: BodyStructureNode,
    transport: "Transport",
    *,
    server_encoding: Union[str, Charset] = Charset.UTF_8,
    attachments_ignore: bool = False,
) -> DecodedMessage:
    """Assemble a :class:`DecodedMessage` from headers and a body structure.

    What:
      Decodes the well-known headers, normalises the date, walks the body tree
      and reports whether the message carries attachments.

    Why:
      This is the single place where header handling and body handling meet,
      shared by the IMAP and in-memory code paths.

    How:
      Parses ``raw_headers`` with the ``compat32`` policy so values stay as
      transmitted, unfolds them and runs each through
      :func:`~mailparts.core.charset.decode_header_word`. Address headers are
      split with :func:`email.utils.getaddresses` before display names are
      decoded. Bodies and attachments come from :class:`BodyTreeWalker`.

    Args:
      message_id: Identifier of the message within ``transport``.
      raw_headers: Raw header block of the message.
      root: Body-structure tree of the message.
      transport: Source of part bytes.
      server_encoding: Charset body texts are converted into.
      attachments_ignore: Skip attachment leaves.

    Returns:
      The decoded message.

    Raises:
      MalformedEncodedWordError: If a header holds an invalid encoded word.
      UnsupportedCharsetError: If a text part declares an unknown
        charset.
      TransferDecodingError: If a body part contradicts its encoding.
    """

    parsed = BytesHeaderParser(policy=compat32).parsebytes(raw_headers)
    raw: Dict[str, str] = {}
    for name, value in parsed.items():
        key = name.lower()
        if key not in raw:
            raw[key] = _FOLD.sub("", str(value)).strip()

    headers = {key: _decode_value(value, server_encoding) for key, value in raw.items()}

    from_name, from_address = _split_address(raw.get("from"), server_encoding)
    date_value = raw.get("date")
    walk = BodyTreeWalker(transport, message_id, server_encoding, attachments_ignore).walk(root)

    return DecodedMessage(
        message_id=message_id,
        header_message_id=raw.get("message-id") or None,
        subject=headers.get("subject"),
        from_=headers.get("from"),
        from_name=from_name,
        from_address=from_address,
        to=headers.get("to"),
        cc=headers.get("cc"),
        bcc=headers.get("bcc"),
        reply_to=headers.get("reply-to"),
        to_list=_address_list(raw.get("to"), server_encoding),
        cc_list=_address_list(raw.get("cc"), server_encoding),
        bcc_list=_address_list(raw.get("bcc"), server_encoding),
        date=date_value,
        date_normalized=parse_datetime(date_value).value if date_value else None,
        text_plain=walk.text_plain,
        text_html=walk.text_html,
        attachments=walk.attachments,
        has_attachments=has_attachments(root),
        headers=headers,
    )


def _decode_value(value: str, target: Union[str, Charset]) -> str:
    if not value.strip():
        return ""
    return decode_header_word(value, target)


def _decode_optional(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return decode_header_word(value)


def _split_address(value: Optional[str], target: Union[str, Charset]) -> Tuple[Optional[str], Optional[str]]:
    if not value:
        return None, None
    name, address = parseaddr(value)
    return (_decode_value(name, target) or None), (address or None)


def _address_list(value: Optional[str], target: Union[str, Charset]) -> List[str]:
    if not value:
        return []
    formatted: List[str] = []
    for name, address in getaddresses([value]):
        if not address and not name:
            continue
        display = _decode_value(name, target)
        formatted.append(f"{display} <{address}>" if display else address)
    return formatted


__all__ = [
    "PartKind",
    "classify",
    "iter_parts",
    "has_attachments",
    "WalkResult",
    "BodyTreeWalker",
    "build_message",
]
