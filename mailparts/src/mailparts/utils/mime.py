"""Helpers turning raw RFC822 bytes into body structures and part payloads.

What:
  Parse raw messages with the standard :mod:`email` package, derive the
  :class:`~mailparts.core.structure.BodyStructureNode` tree an IMAP server
  would report for them, and serve the raw bytes of any part by its IMAP part
  address.

Why:
  ``.eml`` files and test fixtures have no server to answer ``BODYSTRUCTURE``
  queries. Producing the same tree locally lets the decoding core handle files
  and mailboxes through one code path.

How:
  Use :class:`~email.parser.BytesParser` with the ``compat32`` policy so
  payloads stay exactly as transmitted (undecodable octets survive as
  surrogate escapes and are restored with ``surrogateescape``). Parameters are
  read with RFC2231 continuations collapsed.

Interfaces:
  :func:`parse_message`, :func:`split_header_block`,
  :func:`structure_from_message`, :func:`part_payload`,
  :func:`param_value`.

Invariants & Safety:
  - Part numbering follows RFC3501: children of a multipart are ``1``, ``2``;
    the body of a non-multipart message is ``1`` as well as ``""``.
  - Payload bytes are returned still transfer-encoded.
"""
from __future__ import annotations

import re
from email.message import Message
from email.parser import BytesParser
from email.policy import compat32
from email.utils import collapse_rfc2231_value, unquote
from typing import List, Optional, Tuple

from ..core.structure import BodyStructureNode, Disposition, MimeType
from ..errors import TransportError

_HEADER_END = re.compile(rb"\r?\n\r?\n")


def parse_message(raw: bytes) -> Message:
    """Parse ``raw`` without altering any payload bytes."""

    return BytesParser(policy=compat32).parsebytes(raw)


def split_header_block(raw: bytes) -> Tuple[bytes, bytes]:
    """Split ``raw`` into its header block (with terminator) and body."""

    match = _HEADER_END.search(raw)
    if match is None:
        return raw, b""
    return raw[: match.end()], raw[match.end() :]


def structure_from_message(message: Message) -> BodyStructureNode:
    """Build the body-structure tree of a parsed message.

    What:
      Mirrors the information of an IMAP ``BODYSTRUCTURE`` response: media
      type, parameters, encoding, size, disposition, content id and
      description for every part.

    Why:
      Feeds locally parsed messages into
      :class:`~mailparts.core.walker.BodyTreeWalker`.

    How:
      Recurses through multipart payloads. Embedded ``message/*`` parts are
      leaves. A multipart without parseable children degrades to a
      TEXT/PLAIN leaf, as the stdlib parser does for such defects.

    Args:
      message: Message parsed by :func:`parse_message`.

    Returns:
      Root node of the tree.
    """

    maintype = message.get_content_maintype()
    subtype = message.get_content_subtype()
    children: List[BodyStructureNode] = []
    if message.is_multipart() and maintype == "multipart":
        children = [structure_from_message(part) for part in message.get_payload()]
        if not children:
            maintype, subtype = "text", "plain"
    elif maintype == "multipart":
        maintype, subtype = "text", "plain"

    disposition = None
    if message.get("Content-Disposition") is not None:
        disposition = Disposition(
            type=message.get_content_disposition() or "attachment",
            parameters=_params(message, "content-disposition"),
        )

    return BodyStructureNode(
        type=MimeType.parse(maintype),
        subtype=subtype,
        parameters=_params(message, "content-type"),
        encoding=_header(message, "Content-Transfer-Encoding"),
        size=0 if children else len(_leaf_bytes(message)),
        disposition=disposition,
        id=_header(message, "Content-ID"),
        description=_header(message, "Content-Description"),
        children=tuple(children),
    )


def part_payload(raw: bytes, part_address: str) -> bytes:
    """Return the raw bytes of the part at ``part_address``.

    Args:
      raw: Complete message bytes.
      part_address: Dotted IMAP part number, ``""`` for the message body.

    Returns:
      The part's body bytes, still transfer-encoded.

    Raises:
      TransportError: If the address does not exist in the message.
    """

    if not part_address:
        return split_header_block(raw)[1]
    current = parse_message(raw)
    for step in part_address.split("."):
        current = _child(current, step, part_address)
    return _leaf_bytes(current)


def _child(message: Message, step: str, address: str) -> Message:
    if not step.isdigit() or int(step) < 1:
        raise TransportError(f"invalid part address {address!r}")
    index = int(step) - 1
    if message.get_content_type() == "message/rfc822" and message.is_multipart():
        message = message.get_payload(0)
    if not message.is_multipart():
        if index == 0:
            return message
        raise TransportError(f"part {address!r} does not exist")
    parts = message.get_payload()
    if index >= len(parts):
        raise TransportError(f"part {address!r} does not exist")
    return parts[index]


def _leaf_bytes(message: Message) -> bytes:
    payload = message.get_payload()
    if isinstance(payload, list):
        if message.get_content_maintype() == "message" and payload:
            return payload[0].as_bytes(policy=compat32)
        return b"".join(part.as_bytes(policy=compat32) for part in payload)
    if payload is None:
        return b""
    if isinstance(payload, bytes):
        return payload
    return payload.encode("ascii", errors="surrogateescape")


def _params(message: Message, header: str) -> List[Tuple[str, str]]:
    if message.get(header) is None:
        return []
    params = message.get_params(header=header) or []
    result: List[Tuple[str, str]] = []
    for key, value in params[1:]:
        result.append((key, param_value(value)))
    return result


def param_value(value) -> str:
    """Collapse an RFC2231 parameter value and drop surrounding double quotes.

    Some interpreter versions hand RFC2231 values back still quoted.
    """

    text = str(collapse_rfc2231_value(value))
    if text.startswith('"'):
        return unquote(text)
    return text

def _header(message: Message, name: str) -> Optional[str]:
    value = message.get(name)
    if value is None:
        return None
    return " ".join(str(value).split()) or None


__all__ = [
    "parse_message",
    "split_header_block",
    "structure_from_message",
    "part_payload",
    "param_value",
]
