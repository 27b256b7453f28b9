"""Pytest fixtures for unit tests requiring transport fakes.

What:
  Make ``tests/unit`` importable and expose an ``imap_transport`` fixture backed
  by :class:`FakeImapBackend`.

Why:
  The IMAP transport must be exercised without network resources; a shared fake
  keeps fetch and append flows deterministic.

How:
  Append the unit directory to ``sys.path`` for local imports, monkeypatch the
  ``IMAPClient`` constructor used by :mod:`mailparts.imap.client`, and yield the
  connected transport together with its backend.

Interfaces:
  :func:`imap_transport` (pytest fixture).

Invariants & Safety:
  - Each test receives a fresh backend instance.
"""

import sys
from pathlib import Path

import pytest

from mailparts.imap.client import ImapConfig, ImapTransport

UNIT_DIR = Path(__file__).resolve().parent
if str(UNIT_DIR) not in sys.path:
    sys.path.insert(0, str(UNIT_DIR))

from fakes import FakeImapBackend


@pytest.fixture
def imap_backend(monkeypatch: pytest.MonkeyPatch) -> FakeImapBackend:
    backend = FakeImapBackend()
    monkeypatch.setattr("mailparts.imap.client.IMAPClient", lambda host, port, ssl: backend)
    return backend


@pytest.fixture
def imap_transport(imap_backend: FakeImapBackend):
    """Yield ``(ImapTransport, FakeImapBackend)`` inside the transport's context."""

    config = ImapConfig(host="localhost", username="user", password="pass")
    with ImapTransport(config) as transport:
        yield transport, imap_backend
