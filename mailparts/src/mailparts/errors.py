"""Typed error hierarchy shared by the decoding and composing layers.

What:
  Declare the exception classes raised by :mod:`mailparts` so callers can tell
  user input mistakes apart from corrupt mail and transport failures.

Why:
  Decoding is deliberately tolerant (unknown subtypes, odd dates) but must fail
  loudly when text would otherwise be corrupted silently or when the caller
  misuses the API. A dedicated hierarchy keeps those two policies visible at
  every ``except`` site.

How:
  Every error derives from :class:`MailPartsError`. Argument problems also
  derive from :class:`ValueError` and state problems from
  :class:`RuntimeError`, so generic handlers keep working.

Interfaces:
  :class:`MailPartsError`, :class:`InvalidArgumentError`,
  :class:`EmptyInputError`, :class:`UnsupportedCharsetError`,
  :class:`MalformedEncodedWordError`, :class:`TransferDecodingError`,
  :class:`BoundaryCollisionError`, :class:`DataNotYetAttachedError`,
  :class:`TransportError`.
"""
from __future__ import annotations


class MailPartsError(Exception):
    """Base class for every error raised by :mod:`mailparts`."""


class InvalidArgumentError(MailPartsError, ValueError):
    """Raised when a caller supplies an argument the API cannot work with."""


class EmptyInputError(InvalidArgumentError):
    """Raised for empty inputs such as a blank date or a body-less message."""


class UnsupportedCharsetError(InvalidArgumentError):
    """Raised when a charset name is unknown or outside the supported set.

    Attributes:
      charset: The offending charset name as received.
    """

    def __init__(self, charset: object, message: str | None = None) -> None:
        self.charset = charset
        super().__init__(message or f"Unsupported charset: {charset!r}")


class MalformedEncodedWordError(MailPartsError, ValueError):
    """Raised when an RFC2047 encoded word cannot be decoded at all."""


class TransferDecodingError(MailPartsError, ValueError):
    """Raised when body bytes do not match their declared transfer-encoding."""


class BoundaryCollisionError(MailPartsError):
    """Raised when no multipart boundary could be found that avoids the content."""


class DataNotYetAttachedError(MailPartsError, RuntimeError):
    """Raised when content is requested before a data reference was bound."""


class TransportError(MailPartsError):
    """Raised by transports when a message or part cannot be retrieved."""


__all__ = [
    "MailPartsError",
    "InvalidArgumentError",
    "EmptyInputError",
    "UnsupportedCharsetError",
    "MalformedEncodedWordError",
    "TransferDecodingError",
    "BoundaryCollisionError",
    "DataNotYetAttachedError",
    "TransportError",
]
