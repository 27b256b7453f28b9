"""RFC822 message composition from an envelope and body-part descriptors.

What:
  Serialise a message from an :class:`Envelope` and an ordered list of
  :class:`BodyPartSpec` entries into CRLF-terminated RFC822 octets, ready for an
  IMAP ``APPEND``.

Why:
  Messages appended by the library must come out byte-for-byte predictable:
  identical inputs yield identical headers in a fixed order, filenames are
  emitted verbatim and boundaries never occur inside the content they
  delimit.

How:
  Each part is rendered to its header lines and transfer-encoded body first.
  A single part becomes a single-part message. Several parts are wrapped in a
  ``multipart`` container whose boundary token is drawn from :mod:`secrets`
  and re-drawn while it collides with any rendered part. Header values are
  folded at 78 columns; non-ASCII values are emitted as RFC2047 encoded words
  through :class:`email.header.Header` and non-ASCII parameters as RFC2231
  extended values.

Interfaces:
  :class:`Envelope`, :class:`BodyPartSpec`, :class:`ComposeSpec`,
  :func:`compose`.

Invariants & Safety:
  - Output uses CRLF line endings throughout.
  - Header order is fixed: envelope headers, ``Subject``, ``MIME-Version``,
    then the content headers.
  - A leading part of type MULTIPART only describes the container (subtype and
    parameters); it never carries content.
"""
from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime
from email.header import Header
from email.utils import format_datetime, formataddr, getaddresses
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import quote

from ..errors import BoundaryCollisionError, EmptyInputError, InvalidArgumentError
from ..utils.logging import get_logger
from .charset import Charset, DEFAULT_DECLARED_CHARSET, lookup_codec, to_utf7_imap
from .structure import MimeType, Parameters
from .transfer import TransferEncoding, encode_transfer

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..config.schema import ComposeSettings


LOGGER = get_logger("mailparts.composer")

CRLF = "\r\n"
MAX_HEADER_LENGTH = 78

DEFAULT_SUBTYPES: Dict[MimeType, str] = {
    MimeType.TEXT: "PLAIN",
    MimeType.MULTIPART: "MIXED",
    MimeType.MESSAGE: "RFC822",
    MimeType.APPLICATION: "OCTET-STREAM",
    MimeType.AUDIO: "BASIC",
}

_ADDRESS_HEADERS = {"from", "reply-to", "to", "cc", "bcc"}
_ENVELOPE_KEYS = {
    "subject": "subject",
    "from": "from_",
    "from_": "from_",
    "to": "to",
    "cc": "cc",
    "bcc": "bcc",
    "reply_to": "reply_to",
    "reply-to": "reply_to",
    "date": "date",
    "message_id": "message_id",
    "message-id": "message_id",
    "in_reply_to": "in_reply_to",
    "in-reply-to": "in_reply_to",
    "references": "references",
    "custom_headers": "custom_headers",
}

AddressValue = Union[None, str, Sequence[str]]


@dataclass
class Envelope:
    """Top-level message headers.

    Address fields accept a single string or a sequence of addresses which is
    joined with ``", "``. ``custom_headers`` keeps insertion order and accepts
    a mapping, ``(name, value)`` pairs or ``"Name: value"`` strings.
    """

    subject: str
    from_: AddressValue = None
    to: AddressValue = None
    cc: AddressValue = None
    bcc: AddressValue = None
    reply_to: AddressValue = None
    date: Union[None, str, datetime] = None
    message_id: Optional[str] = None
    in_reply_to: Optional[str] = None
    references: Optional[str] = None
    custom_headers: Any = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.subject is None:
            raise InvalidArgumentError("envelope needs a subject")
        self.custom_headers = _normalise_custom_headers(self.custom_headers)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "Envelope":
        """Build an envelope from loosely keyed data such as a YAML document.

        Keys are matched case-insensitively; both ``reply_to`` and
        ``reply-to`` spellings are understood.

        Raises:
          InvalidArgumentError: On unknown keys or a missing subject.
        """

        values: Dict[str, Any] = {}
        for key, value in mapping.items():
            attribute = _ENVELOPE_KEYS.get(str(key).strip().lower())
            if attribute is None:
                raise InvalidArgumentError(f"unknown envelope field {key!r}")
            values[attribute] = value
        if values.get("subject") is None:
            raise InvalidArgumentError("envelope needs a subject")
        return cls(**values)

    def header_lines(self) -> List[Tuple[str, str]]:
        """Return the envelope headers in emission order, ``Subject`` excluded."""

        date = self.date
        if isinstance(date, datetime):
            date = format_datetime(date)
        ordered: List[Tuple[str, Optional[str]]] = [
            ("Date", date),
            ("From", _join_addresses(self.from_)),
            ("Reply-To", _join_addresses(self.reply_to)),
            ("To", _join_addresses(self.to)),
            ("Cc", _join_addresses(self.cc)),
            ("Bcc", _join_addresses(self.bcc)),
            ("Message-ID", self.message_id),
            ("In-Reply-To", self.in_reply_to),
            ("References", self.references),
        ]
        lines = [(name, value) for name, value in ordered if value]
        lines.extend(self.custom_headers)
        return lines


@dataclass
class BodyPartSpec:
    """Description of one body part to compose.

    What:
      Media type, transfer-encoding, descriptive headers and the content of a
      single part.

    Why:
      Callers describe *what* to send; :func:`compose` owns every detail of
      *how* it is serialised.

    How:
      :meth:`__post_init__` fills the defaults: the subtype from
      :data:`DEFAULT_SUBTYPES` (``UNKNOWN`` for types without one) and
      ``US-ASCII`` as charset for TEXT parts. Content is given inline
      (``content``) or read from ``path`` at compose time.

    Attributes:
      type: Top-level media type.
      subtype: Media subtype; emitted exactly as given.
      encoding: Transfer-encoding applied to the content.
      charset: Charset parameter (TEXT parts only by default).
      description: ``Content-Description`` value.
      id: ``Content-ID`` value; angle brackets are added when missing.
      disposition_type: ``attachment``/``inline`` or ``None``.
      disposition: Disposition parameters such as ``filename``.
      type_parameters: Additional ``Content-Type`` parameters such as ``name``.
      content: Raw content; text is encoded with ``charset``.
      path: File providing the raw content instead of ``content``.
    """

    type: MimeType = MimeType.TEXT
    subtype: Optional[str] = None
    encoding: TransferEncoding = TransferEncoding.SEVEN_BIT
    charset: Optional[str] = None
    description: Optional[str] = None
    id: Optional[str] = None
    disposition_type: Optional[str] = None
    disposition: Mapping[str, str] = field(default_factory=dict)
    type_parameters: Mapping[str, str] = field(default_factory=dict)
    content: Union[None, bytes, str] = None
    path: Union[None, str, Path] = None

    def __post_init__(self) -> None:
        self.type = MimeType.parse(self.type)
        if not self.subtype:
            self.subtype = DEFAULT_SUBTYPES.get(self.type, "UNKNOWN")
        self.encoding = TransferEncoding.parse(self.encoding)
        if self.charset is None and self.type is MimeType.TEXT:
            self.charset = DEFAULT_DECLARED_CHARSET.value
        self.disposition = Parameters(self.disposition)
        self.type_parameters = Parameters(self.type_parameters)
        if self.content is not None and self.path is not None:
            raise InvalidArgumentError("a body part takes either content or a path, not both")

    def raw_content(self) -> bytes:
        """Return the unencoded content bytes, reading ``path`` if needed."""

        if self.path is not None:
            return Path(self.path).expanduser().read_bytes()
        if self.content is None:
            return b""
        if isinstance(self.content, bytes):
            return self.content
        codec = lookup_codec(self.charset or "utf-8")
        if codec == Charset.UTF7_IMAP.codec:
            return to_utf7_imap(self.content)
        return self.content.encode(codec)


@dataclass
class ComposeSpec:
    """Envelope plus ordered parts, the input of one compose call."""

    envelope: Envelope
    parts: List[BodyPartSpec] = field(default_factory=list)

    def compose(self, **kwargs: Any) -> bytes:
        return compose(self.envelope, self.parts, **kwargs)


def compose(
    envelope: Envelope,
    parts: Sequence[BodyPartSpec],
    *,
    boundary: Optional[str] = None,
    settings: Optional["ComposeSettings"] = None,
) -> bytes:
    """Serialise ``envelope`` and ``parts`` into RFC822 octets.

    What:
      Produces the complete message: headers, blank line, body.

    Why:
      This is the only place messages are built, so every appended message
      shares the same header order and encoding rules.

    How:
      Renders each part, then either emits the single part's headers after the
      envelope or wraps all parts in a multipart container. Without an explicit
      ``boundary`` a token is generated from the configured prefix and re-drawn
      up to ``settings.max_boundary_attempts`` times while it collides with the
      rendered parts.

    Args:
      envelope: Message headers.
      parts: Body parts in order. A leading MULTIPART part selects the
        container subtype and parameters.
      boundary: Fixed boundary token, mostly useful in tests.
      settings: Compose settings; the runtime configuration when omitted.

    Returns:
      The message bytes with CRLF line endings.

    Raises:
      EmptyInputError: If no content part is given.
      InvalidArgumentError: If a MULTIPART part appears after the first
        position.
      BoundaryCollisionError: If the boundary cannot avoid the content.
    """

    if settings is None:
        from ..config.loader import get_runtime_config

        settings = get_runtime_config().compose

    container: Optional[BodyPartSpec] = None
    content_parts = list(parts)
    if content_parts and content_parts[0].type is MimeType.MULTIPART:
        container = content_parts.pop(0)
    if not content_parts:
        raise EmptyInputError("cannot compose a message without body parts")
    for part in content_parts:
        if part.type is MimeType.MULTIPART:
            raise InvalidArgumentError("nested multipart parts are not supported")

    lines = [_format_header(name, value) for name, value in envelope.header_lines()]
    lines.append(_format_header("Subject", envelope.subject))
    lines.append("MIME-Version: 1.0")

    rendered = [_render_part(part, settings.line_length) for part in content_parts]
    if container is None and len(rendered) == 1:
        headers, body = rendered[0]
        lines.extend(headers)
        lines.append("")
        return (CRLF.join(lines) + CRLF).encode("ascii") + body + CRLF.encode("ascii")

    token = _choose_boundary(rendered, boundary, settings)
    subtype = (container.subtype if container is not None else "mixed").lower()
    params = [("boundary", token)]
    if container is not None:
        params.extend((k, v) for k, v in container.type_parameters.items() if k.lower() != "boundary")
    content_type = f"multipart/{subtype}; " + "; ".join(
        _render_parameter(key, value, force_quotes=key == "boundary") for key, value in params
    )
    lines.append(_format_header("Content-Type", content_type))
    lines.append("")
    output = bytearray((CRLF.join(lines) + CRLF).encode("ascii"))
    delimiter = f"--{token}".encode("ascii")
    for headers, body in rendered:
        output += delimiter + b"\r\n"
        output += (CRLF.join(headers) + CRLF + CRLF).encode("ascii")
        output += body + b"\r\n"
    output += delimiter + b"--\r\n"
    return bytes(output)


def _render_part(part: BodyPartSpec, line_length: int) -> Tuple[List[str], bytes]:
    params: List[Tuple[str, str]] = []
    if part.charset:
        params.append(("CHARSET", part.charset))
    params.extend(
        (key, value)
        for key, value in part.type_parameters.items()
        if not (part.charset and key.lower() == "charset")
    )
    content_type = f"{part.type.value}/{part.subtype}"
    if params:
        content_type += "; " + "; ".join(_render_parameter(k, v) for k, v in params)
    headers = [_format_header("Content-Type", content_type)]
    if part.encoding.header_value:
        headers.append(f"Content-Transfer-Encoding: {part.encoding.header_value}")
    if part.id:
        content_id = part.id.strip()
        if not content_id.startswith("<"):
            content_id = f"<{content_id}>"
        headers.append(_format_header("Content-ID", content_id))
    if part.description:
        headers.append(_format_header("Content-Description", part.description))
    if part.disposition_type:
        disposition = part.disposition_type
        if part.disposition:
            disposition += "; " + "; ".join(
                _render_parameter(k, v) for k, v in part.disposition.items()
            )
        headers.append(_format_header("Content-Disposition", disposition))
    body = encode_transfer(part.raw_content(), part.encoding, line_length=line_length)
    return headers, body


def _choose_boundary(
    rendered: Sequence[Tuple[List[str], bytes]],
    boundary: Optional[str],
    settings: "ComposeSettings",
) -> str:
    if boundary is not None:
        if not boundary or _collides(boundary, rendered):
            raise BoundaryCollisionError(f"boundary {boundary!r} occurs inside the message content")
        return boundary
    for attempt in range(1, settings.max_boundary_attempts + 1):
        token = f"{settings.boundary_prefix}{secrets.token_hex(16)}"
        if not _collides(token, rendered):
            return token
        LOGGER.warning("boundary_collision", attempt=attempt)
    raise BoundaryCollisionError(
        f"no collision-free boundary after {settings.max_boundary_attempts} attempts"
    )


def _collides(token: str, rendered: Sequence[Tuple[List[str], bytes]]) -> bool:
    needle = token.encode("ascii", errors="replace")
    for headers, body in rendered:
        if needle in body or any(token in line for line in headers):
            return True
    return False


def _render_parameter(key: str, value: str, *, force_quotes: bool = False) -> str:
    """Render ``key=value`` for a structured header.

    Non-ASCII values use the RFC2231 ``key*=utf-8''...`` form. Values are only
    quoted when they hold whitespace, ``;`` or ``"``.
    """

    if not value.isascii():
        return f"{key}*=utf-8''{quote(value, safe='')}"
    if force_quotes or not value or any(ch.isspace() or ch in ';"' for ch in value):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'{key}="{escaped}"'
    return f"{key}={value}"


def _format_header(name: str, value: str) -> str:
    """Return a folded ``Name: value`` header without the trailing CRLF."""

    value = " ".join(str(value).splitlines())
    if not value.isascii():
        if name.lower() in _ADDRESS_HEADERS:
            value = ", ".join(
                formataddr((display, address), charset="utf-8")
                for display, address in getaddresses([value])
            )
        else:
            value = Header(value, charset="utf-8", maxlinelen=MAX_HEADER_LENGTH, header_name=name).encode(
                linesep=CRLF
            )
            return f"{name}: {value}"
    return _fold(f"{name}: {value}", MAX_HEADER_LENGTH)


def _fold(line: str, limit: int) -> str:
    if len(line) <= limit:
        return line
    words = line.split(" ")
    folded: List[str] = []
    current = words[0]
    for word in words[1:]:
        if current.strip() and len(current) + 1 + len(word) > limit:
            folded.append(current)
            current = " " + word
        else:
            current += " " + word
    folded.append(current)
    return CRLF.join(folded)


def _join_addresses(value: AddressValue) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    joined = ", ".join(item.strip() for item in value if item and item.strip())
    return joined or None


def _normalise_custom_headers(value: Any) -> List[Tuple[str, str]]:
    if not value:
        return []
    items: Iterable[Any] = value.items() if isinstance(value, Mapping) else value
    headers: List[Tuple[str, str]] = []
    for item in items:
        if isinstance(item, str):
            name, sep, header_value = item.partition(":")
            if not sep or not name.strip():
                raise InvalidArgumentError(f"custom header {item!r} is not of the form 'Name: value'")
            headers.append((name.strip(), header_value.strip()))
        else:
            name, header_value = item
            headers.append((str(name).strip(), str(header_value)))
    return headers


__all__ = [
    "DEFAULT_SUBTYPES",
    "Envelope",
    "BodyPartSpec",
    "ComposeSpec",
    "compose",
]
