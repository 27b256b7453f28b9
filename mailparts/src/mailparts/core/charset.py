"""Charset names, modified UTF-7 and RFC2047 header decoding.

What:
  Validate server charset names against a fixed allow-list, convert text to and
  from the modified UTF-7 used for IMAP folder names, and decode MIME
  encoded-word header values into Unicode.

Why:
  Header text and folder names arrive in half a dozen encodings. Every caller
  needs the same answer to "is this charset acceptable" and the same policy for
  broken encoded words, otherwise subjects render differently depending on the
  code path that decoded them.

How:
  :class:`Charset` enumerates the accepted server charsets and maps each to a
  Python codec; matching is exact after trimming and upper-casing. UTF7-IMAP is
  delegated to :mod:`imapclient.imap_utf7`. Encoded words are located with a
  regular expression and each one is decoded on its own through
  :func:`email.header.decode_header`; literal text between them is never
  re-encoded.

Interfaces:
  :class:`Charset`, :func:`normalize_name`, :func:`lookup_codec`,
  :func:`to_utf7_imap`, :func:`from_utf7_imap`, :func:`encode_text`,
  :func:`decode_text`, :func:`decode_header_word`.

Invariants & Safety:
  - ``UTF8`` is rejected even though ``UTF-8`` is accepted; no fuzzy matching.
  - ``from_utf7_imap(to_utf7_imap(s)) == s`` for every string ``s``.
  - Header values without ``=?`` markers are returned unchanged.
"""
from __future__ import annotations

import codecs
import re
from email.errors import HeaderParseError
from email.header import decode_header
from enum import Enum
from typing import List, Optional, Union

from imapclient import imap_utf7

from ..errors import MalformedEncodedWordError, UnsupportedCharsetError


class Charset(str, Enum):
    """Server charsets accepted by :func:`normalize_name`."""

    UTF_7 = "UTF-7"
    UTF7_IMAP = "UTF7-IMAP"
    UTF_8 = "UTF-8"
    ASCII = "ASCII"
    US_ASCII = "US-ASCII"
    ISO_8859_1 = "ISO-8859-1"
    ISO_8859_2 = "ISO-8859-2"
    ISO_8859_3 = "ISO-8859-3"
    ISO_8859_4 = "ISO-8859-4"
    ISO_8859_5 = "ISO-8859-5"
    ISO_8859_6 = "ISO-8859-6"
    ISO_8859_7 = "ISO-8859-7"
    ISO_8859_8 = "ISO-8859-8"
    ISO_8859_9 = "ISO-8859-9"
    ISO_8859_10 = "ISO-8859-10"
    ISO_8859_11 = "ISO-8859-11"
    ISO_8859_13 = "ISO-8859-13"
    ISO_8859_14 = "ISO-8859-14"
    ISO_8859_15 = "ISO-8859-15"
    ISO_8859_16 = "ISO-8859-16"
    WINDOWS_1250 = "WINDOWS-1250"
    WINDOWS_1251 = "WINDOWS-1251"
    WINDOWS_1252 = "WINDOWS-1252"
    WINDOWS_1253 = "WINDOWS-1253"
    WINDOWS_1254 = "WINDOWS-1254"
    WINDOWS_1255 = "WINDOWS-1255"
    WINDOWS_1256 = "WINDOWS-1256"
    WINDOWS_1257 = "WINDOWS-1257"
    WINDOWS_1258 = "WINDOWS-1258"
    KOI8_R = "KOI8-R"
    KOI8_U = "KOI8-U"
    UTF_16 = "UTF-16"
    UTF_16BE = "UTF-16BE"
    UTF_16LE = "UTF-16LE"
    UTF_32 = "UTF-32"
    ISO_2022_JP = "ISO-2022-JP"
    SHIFT_JIS = "SHIFT_JIS"
    EUC_JP = "EUC-JP"
    EUC_KR = "EUC-KR"
    GB2312 = "GB2312"
    GBK = "GBK"
    GB18030 = "GB18030"
    BIG5 = "BIG5"

    @property
    def codec(self) -> str:
        """Python codec name, or ``"utf7-imap"`` for the IMAP folder variant."""

        if self is Charset.UTF7_IMAP:
            return "utf7-imap"
        if self is Charset.ASCII:
            return "ascii"
        return codecs.lookup(self.value).name


DEFAULT_DECLARED_CHARSET = Charset.US_ASCII

_ENCODED_WORD = re.compile(r"=\?([^?\s]+)\?([^?\s]*)\?([^?\s]*)\?=")


def normalize_name(name: Union[str, Charset]) -> Charset:
    """Resolve ``name`` to a member of the supported charset allow-list.

    What:
      Trims and upper-cases ``name`` and returns the exactly matching
      :class:`Charset` member.

    Why:
      Server encoding settings drive every text conversion. Accepting near
      misses such as ``UTF8`` would hide configuration typos, so only the exact
      spellings are valid.

    How:
      Looks the canonical spelling up in the enum by value and converts the
      lookup failure into :class:`UnsupportedCharsetError`.

    Args:
      name: Charset name as configured by an operator or caller.

    Returns:
      The matching :class:`Charset`.

    Raises:
      UnsupportedCharsetError: If ``name`` is not in the allow-list.
    """

    if isinstance(name, Charset):
        return name
    if not isinstance(name, str):
        raise UnsupportedCharsetError(name)
    try:
        return Charset(name.strip().upper())
    except ValueError as exc:
        raise UnsupportedCharsetError(name) from exc


def lookup_codec(name: Optional[Union[str, bytes]]) -> str:
    """Return the Python codec for a charset declared inside a message.

    Declared charsets are not limited to the server allow-list; any name Python
    knows is accepted. Missing names fall back to US-ASCII.

    Raises:
      UnsupportedCharsetError: If Python has no codec for ``name``.
    """

    if isinstance(name, bytes):
        name = name.decode("ascii", errors="replace")
    cleaned = (name or "").strip().strip('"').strip()
    if not cleaned:
        return DEFAULT_DECLARED_CHARSET.codec
    if cleaned.upper() == Charset.UTF7_IMAP.value:
        return Charset.UTF7_IMAP.codec
    try:
        return codecs.lookup(cleaned).name
    except LookupError as exc:
        raise UnsupportedCharsetError(name) from exc


def to_utf7_imap(text: str) -> bytes:
    """Encode ``text`` with the modified UTF-7 used by IMAP mailbox names."""

    return imap_utf7.encode(text)


def from_utf7_imap(data: Union[bytes, str]) -> str:
    """Decode modified UTF-7 mailbox names back into Unicode text."""

    if isinstance(data, str):
        data = data.encode("ascii")
    return imap_utf7.decode(data)


def encode_text(text: str, charset: Union[str, Charset], errors: str = "strict") -> bytes:
    """Encode ``text`` into the supported server ``charset``."""

    target = normalize_name(charset)
    if target is Charset.UTF7_IMAP:
        return to_utf7_imap(text)
    return text.encode(target.codec, errors)


def decode_text(data: bytes, charset: Union[str, Charset], errors: str = "strict") -> str:
    """Decode ``data`` that is known to be in the supported server ``charset``."""

    source = normalize_name(charset)
    if source is Charset.UTF7_IMAP:
        return from_utf7_imap(data)
    return data.decode(source.codec, errors)


def decode_header_word(raw: Union[str, bytes], target_charset: Union[str, Charset] = Charset.UTF_8) -> str:
    """Decode RFC2047 encoded words embedded in a header value.

    What:
      Replaces every ``=?charset?Q|B?payload?=`` token with its decoded text
      while keeping literal text (names, angle-bracket addresses) intact.

    Why:
      Subjects and address headers are the most visible strings of a message;
      they must decode identically everywhere and must not be mangled when the
      sender did not encode anything at all.

    How:
      Rejects blank input and invalid sub-encodings up front and returns values
      without encoded-word markers untouched. Otherwise the value is split on
      encoded words: literal runs are copied verbatim, each encoded word is
      decoded on its own, and whitespace is dropped only when it separates two
      encoded words. A word whose charset Python does not know, or whose
      payload is broken, is kept exactly as received.

    Args:
      raw: Header value as transmitted. Bytes are read as UTF-8.
      target_charset: Charset the caller will store the result in; validated
        against the allow-list, the return value is always Unicode text.

    Returns:
      Decoded header text.

    Raises:
      MalformedEncodedWordError: For empty/whitespace-only input or an encoded
        word whose sub-encoding is neither ``Q`` nor ``B``.
      UnsupportedCharsetError: If ``target_charset`` is unknown.
    """

    normalize_name(target_charset)
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not raw or not raw.strip():
        raise MalformedEncodedWordError("cannot decode an empty header value")
    if "=?" not in raw:
        return raw
    words = list(_ENCODED_WORD.finditer(raw))
    for match in words:
        if match.group(2).upper() not in ("Q", "B"):
            raise MalformedEncodedWordError(
                f"invalid encoded-word sub-encoding {match.group(2)!r} in {match.group(0)!r}"
            )
    decoded: List[str] = []
    position = 0
    for match in words:
        gap = raw[position:match.start()]
        if position == 0 or gap.strip():
            decoded.append(gap)
        decoded.append(_decode_word(match.group(0)))
        position = match.end()
    decoded.append(raw[position:])
    return "".join(decoded)


def _decode_word(word: str) -> str:
    try:
        ((payload, charset),) = decode_header(word)
        codec = lookup_codec(charset.split("*", 1)[0])
    except (HeaderParseError, UnsupportedCharsetError, ValueError):
        return word
    if isinstance(payload, str):
        return payload
    return payload.decode(codec, errors="replace")


__all__ = [
    "Charset",
    "DEFAULT_DECLARED_CHARSET",
    "normalize_name",
    "lookup_codec",
    "to_utf7_imap",
    "from_utf7_imap",
    "encode_text",
    "decode_text",
    "decode_header_word",
]
