"""High-level mailbox facade over a transport.

What:
  Offer the operations applications actually call: decode a message by id,
  fetch its raw bytes, check for attachments and append raw or composed
  messages.

Why:
  The walker, composer and transports are independent building blocks.
  Applications want one object that knows the server encoding and the
  attachment policy and wires the pieces together the same way every time.

How:
  :class:`Mailbox` holds a :class:`~mailparts.imap.protocol.Transport` plus
  codec settings taken from the runtime configuration unless overridden, and
  delegates to :func:`~mailparts.core.walker.build_message` and
  :func:`~mailparts.core.composer.compose`.

Interfaces:
  :class:`Mailbox`.

Invariants & Safety:
  - The server encoding is always a member of the supported charset list.
  - Only the body structure and the header block are fetched eagerly; part
    bytes follow the walker's policy.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Union

from ..config.loader import get_runtime_config
from .charset import Charset, decode_header_word, normalize_name
from .composer import ComposeSpec
from .models import DecodedMessage
from .walker import build_message, has_attachments

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..config.schema import ComposeSettings
    from ..imap.protocol import Transport


class Mailbox:
    """Decode and append messages through a transport.

    Args:
      transport: Mail store adapter.
      server_encoding: Charset for decoded text; configuration default when
        omitted.
      attachments_ignore: Skip attachment leaves while decoding; configuration
        default when omitted.
      compose_settings: Settings for composed appends; configuration default
        when omitted.

    Raises:
      UnsupportedCharsetError: If ``server_encoding`` is not supported.
    """

    def __init__(
        self,
        transport: "Transport",
        *,
        server_encoding: Union[None, str, Charset] = None,
        attachments_ignore: Optional[bool] = None,
        compose_settings: Optional["ComposeSettings"] = None,
    ) -> None:
        runtime = get_runtime_config()
        self._transport = transport
        self._server_encoding = normalize_name(
            server_encoding if server_encoding is not None else runtime.codec.server_encoding
        )
        self.attachments_ignore = (
            runtime.codec.attachments_ignore if attachments_ignore is None else attachments_ignore
        )
        self._compose_settings = compose_settings or runtime.compose

    @property
    def transport(self) -> "Transport":
        return self._transport

    def set_server_encoding(self, encoding: Union[str, Charset]) -> None:
        """Change the server encoding; the name is trimmed and upper-cased first.

        Raises:
          UnsupportedCharsetError: If ``encoding`` is not supported.
        """

        self._server_encoding = normalize_name(encoding)

    def get_server_encoding(self) -> str:
        return self._server_encoding.value

    def get_mail(self, message_id: object) -> DecodedMessage:
        """Fetch and decode ``message_id``.

        Text bodies are fetched right away; attachment content is fetched when
        :meth:`~mailparts.core.models.Attachment.get_contents` is called.
        """

        root = self._transport.fetch_body_structure(message_id)
        headers = self._transport.fetch_headers(message_id)
        return build_message(
            message_id,
            headers,
            root,
            self._transport,
            server_encoding=self._server_encoding,
            attachments_ignore=self.attachments_ignore,
        )

    def get_raw_mail(self, message_id: object) -> bytes:
        return self._transport.fetch_raw_message(message_id)

    def has_attachments(self, message_id: object) -> bool:
        """Answer from the body structure alone, without fetching any part."""

        return has_attachments(self._transport.fetch_body_structure(message_id))

    def append_message(self, mailbox: str, message: Union[bytes, ComposeSpec]) -> bool:
        """Append raw bytes or a composed :class:`ComposeSpec` to ``mailbox``."""

        if isinstance(message, ComposeSpec):
            raw = message.compose(settings=self._compose_settings)
        else:
            raw = bytes(message)
        return self._transport.append_raw_message(mailbox, raw)

    def decode_mime_str(self, value: Union[str, bytes]) -> str:
        """Decode encoded words in ``value`` for the current server encoding."""

        return decode_header_word(value, self._server_encoding)


__all__ = ["Mailbox"]
