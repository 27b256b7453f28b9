"""Content-Transfer-Encoding handling and lazily fetched part content.

What:
  Decode and encode body bytes for the MIME transfer-encodings and provide
  :class:`DataReference`, the lazy handle through which decoded part content is
  fetched from a transport exactly once.

Why:
  Attachments can be large and most callers only look at a few of them. Content
  is therefore fetched on demand, yet a reference shared by several readers
  must never hit the mail store twice for the same bytes.

How:
  :class:`TransferEncoding` parses the declared encoding names.
  :func:`decode_transfer` and :func:`encode_transfer` wrap :mod:`base64`,
  :mod:`quopri` and :mod:`binascii`. :class:`DataReference` stores its result
  in a :class:`OnceCell` whose initialisation runs under a lock.

Interfaces:
  :class:`TransferEncoding`, :func:`decode_transfer`, :func:`encode_transfer`,
  :class:`OnceCell`, :class:`DataReference`, :func:`fetch`.

Invariants & Safety:
  - 7BIT, 8BIT, BINARY and OTHER payloads are never altered while decoding.
  - A :class:`DataReference` calls ``Transport.fetch_part_bytes`` at most once
    over its lifetime; caches are never shared between references.
"""
from __future__ import annotations

import base64
import binascii
import quopri
import re
import threading
from enum import Enum
from typing import TYPE_CHECKING, Callable, Generic, Optional, TypeVar, Union

from ..errors import TransferDecodingError
from .charset import Charset, lookup_codec, normalize_name, decode_text, encode_text

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..imap.protocol import Transport


T = TypeVar("T")

_BARE_LF = re.compile(rb"(?<!\r)\n")
_NON_BASE64 = re.compile(rb"[^A-Za-z0-9+/=]")


class TransferEncoding(str, Enum):
    """Content-Transfer-Encoding values understood by the codec layer."""

    SEVEN_BIT = "7BIT"
    EIGHT_BIT = "8BIT"
    BINARY = "BINARY"
    BASE64 = "BASE64"
    QUOTED_PRINTABLE = "QUOTED-PRINTABLE"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: Union[str, bytes, "TransferEncoding", None]) -> "TransferEncoding":
        """Map a declared encoding name onto a member, folding unknowns into OTHER.

        A missing value means 7BIT, the RFC2045 default.
        """

        if isinstance(value, TransferEncoding):
            return value
        if isinstance(value, bytes):
            value = value.decode("ascii", errors="replace")
        cleaned = (value or "").strip().strip('"').upper().replace("_", "-")
        if not cleaned:
            return cls.SEVEN_BIT
        try:
            return cls(cleaned)
        except ValueError:
            return cls.OTHER

    @property
    def header_value(self) -> Optional[str]:
        """Value for a ``Content-Transfer-Encoding`` header, ``None`` for 7BIT."""

        if self is TransferEncoding.SEVEN_BIT:
            return None
        if self is TransferEncoding.OTHER:
            return "X-UNKNOWN"
        return self.value


def decode_transfer(data: bytes, encoding: Union[TransferEncoding, str, None]) -> bytes:
    """Undo the transfer-encoding applied to ``data``.

    What:
      Returns the payload bytes as they were before transport encoding.

    Why:
      Every leaf fetched from the store is still transfer-encoded; callers want
      the original octets of an attachment or the charset-encoded body text.

    How:
      BASE64 ignores line breaks and other characters outside the alphabet and
      restores missing padding before :func:`base64.b64decode`.
      QUOTED-PRINTABLE goes through :func:`quopri.decodestring`. Everything else
      is returned as-is.

    Args:
      data: Raw part bytes as served by the transport.
      encoding: Declared transfer-encoding.

    Returns:
      Decoded bytes.

    Raises:
      TransferDecodingError: If BASE64 content is structurally invalid.
    """

    kind = TransferEncoding.parse(encoding)
    if kind is TransferEncoding.BASE64:
        cleaned = _NON_BASE64.sub(b"", data)
        stripped = cleaned.rstrip(b"=")
        if len(stripped) % 4 == 1:
            raise TransferDecodingError("base64 payload has an impossible length")
        padded = stripped + b"=" * (-len(stripped) % 4)
        try:
            return base64.b64decode(padded)
        except binascii.Error as exc:
            raise TransferDecodingError(f"invalid base64 payload: {exc}") from exc
    if kind is TransferEncoding.QUOTED_PRINTABLE:
        return quopri.decodestring(data)
    return data


def encode_transfer(
    data: bytes,
    encoding: Union[TransferEncoding, str, None],
    line_length: int = 76,
) -> bytes:
    """Apply ``encoding`` to ``data`` for transmission with CRLF line ends.

    BASE64 output is wrapped at ``line_length`` characters. 7BIT and 8BIT text
    has bare LFs promoted to CRLF; BINARY and OTHER are passed through.
    """

    kind = TransferEncoding.parse(encoding)
    if kind is TransferEncoding.BASE64:
        encoded = base64.b64encode(data)
        lines = [encoded[i : i + line_length] for i in range(0, len(encoded), line_length)]
        return b"\r\n".join(lines)
    if kind is TransferEncoding.QUOTED_PRINTABLE:
        encoded = binascii.b2a_qp(data)
        return _BARE_LF.sub(b"\r\n", encoded)
    if kind in (TransferEncoding.SEVEN_BIT, TransferEncoding.EIGHT_BIT):
        return _BARE_LF.sub(b"\r\n", data)
    return data


class OnceCell(Generic[T]):
    """Value slot written at most once, safe to initialise from several threads."""

    _UNSET = object()

    def __init__(self) -> None:
        self._value: object = self._UNSET
        self._lock = threading.Lock()

    @property
    def is_set(self) -> bool:
        return self._value is not self._UNSET

    def get_or_init(self, factory: Callable[[], T]) -> T:
        if self._value is self._UNSET:
            with self._lock:
                if self._value is self._UNSET:
                    self._value = factory()
        return self._value  # type: ignore[return-value]


class DataReference:
    """Lazy, cached handle on the decoded content of one body part.

    What:
      Couples a message id and part address with the encoding metadata needed
      to turn raw transport bytes into usable content.

    Why:
      The body-structure tree only describes parts; content has to be pulled
      from the store. Deferring the fetch keeps message decoding cheap, while
      the cache makes repeated access free.

    How:
      :meth:`fetch` runs :meth:`_load` through a :class:`OnceCell`. Loading
      fetches the raw bytes, removes the transfer-encoding and, for text parts,
      re-encodes from the declared charset into the server charset.

    Attributes:
      message_id: Identifier understood by the transport.
      part_address: Dotted 1-based part path; ``""`` is the message body.
      encoding: Declared transfer-encoding.
      charset: Declared charset of a text part (``None`` means US-ASCII).
      is_text: Whether charset conversion applies.
      server_encoding: Charset the converted text is stored in.
      trim_final_newline: Drop one trailing line break from the raw bytes. Set
        for the body of a single-part message, where the line break closes the
        message rather than belonging to the content.
    """

    def __init__(
        self,
        transport: "Transport",
        message_id: object,
        part_address: str = "",
        *,
        encoding: Union[TransferEncoding, str, None] = TransferEncoding.SEVEN_BIT,
        charset: Optional[str] = None,
        is_text: bool = False,
        server_encoding: Union[Charset, str] = Charset.UTF_8,
        trim_final_newline: bool = False,
    ) -> None:
        self._transport = transport
        self.message_id = message_id
        self.part_address = part_address
        self.encoding = TransferEncoding.parse(encoding)
        self.charset = charset
        self.is_text = is_text
        self.server_encoding = normalize_name(server_encoding)
        self.trim_final_newline = trim_final_newline
        self._cell: OnceCell[bytes] = OnceCell()

    def __repr__(self) -> str:
        return (
            f"DataReference(message_id={self.message_id!r}, part_address={self.part_address!r}, "
            f"encoding={self.encoding.value}, charset={self.charset!r}, is_text={self.is_text})"
        )

    @property
    def is_fetched(self) -> bool:
        """Whether the content has already been pulled from the transport."""

        return self._cell.is_set

    def fetch(self) -> bytes:
        """Return the decoded content, fetching it on first use.

        Returns:
          Transfer-decoded bytes; for text parts, encoded in
          :attr:`server_encoding`.

        Raises:
          TransferDecodingError: If the payload contradicts its encoding.
          UnsupportedCharsetError: If a text part declares an unknown charset.
        """

        return self._cell.get_or_init(self._load)

    def text(self) -> str:
        """Return the fetched content as Unicode text.

        Text parts are read back from the server encoding; other parts are
        read with their declared charset, or UTF-8 when none is declared.
        """

        data = self.fetch()
        if self.is_text:
            return decode_text(data, self.server_encoding, errors="replace")
        return data.decode(lookup_codec(self.charset or "utf-8"), errors="replace")

    def _load(self) -> bytes:
        raw = self._transport.fetch_part_bytes(self.message_id, self.part_address)
        if self.trim_final_newline:
            raw = _strip_final_newline(raw)
        decoded = decode_transfer(raw, self.encoding)
        if not self.is_text:
            return decoded
        codec = lookup_codec(self.charset)
        if codec == Charset.UTF7_IMAP.codec:
            text = decode_text(decoded, Charset.UTF7_IMAP)
        else:
            text = decoded.decode(codec, errors="replace")
        return encode_text(text, self.server_encoding, errors="replace")


def _strip_final_newline(raw: bytes) -> bytes:
    if raw.endswith(b"\r\n"):
        return raw[:-2]
    if raw.endswith(b"\n"):
        return raw[:-1]
    return raw

def fetch(ref: DataReference) -> bytes:
    """Module-level alias for :meth:`DataReference.fetch`."""

    return ref.fetch()


__all__ = [
    "TransferEncoding",
    "decode_transfer",
    "encode_transfer",
    "OnceCell",
    "DataReference",
    "fetch",
]
