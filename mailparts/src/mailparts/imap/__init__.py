"""Facade for the mail-store transport layer.

What:
  Surface the :class:`~mailparts.imap.protocol.Transport` contract together
  with the IMAP and in-memory implementations.

Why:
  Keeping the import surface small lets call sites pick a transport without
  depending on helper functions inside the modules.

How:
  Re-exports the protocol and both transports. The IMAP transport pulls in
  ``imapclient`` and the runtime configuration; the in-memory transport only
  needs the standard library parser.

Interfaces:
  ``Transport``, ``ImapConfig``, ``ImapTransport``, ``MemoryTransport``.

Invariants & Safety:
  - Every transport serves part bytes still transfer-encoded.
"""

from .client import ImapConfig, ImapTransport
from .memory import MemoryTransport
from .protocol import Transport

__all__ = ["Transport", "ImapConfig", "ImapTransport", "MemoryTransport"]
