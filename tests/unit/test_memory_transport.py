"""
Module: tests/unit/test_memory_transport.py

What:
    Check that the in-memory transport derives IMAP-style body structures and
    part payloads from raw messages.

Why:
    Local ``.eml`` decoding and the compose round trip depend on this transport
    numbering parts exactly like a server would.

How:
    Store raw messages, then compare derived structures, part bytes and error
    behaviour for unknown ids and addresses.
"""

import pytest

from mailparts.core.structure import MimeType
from mailparts.errors import TransportError
from mailparts.imap.memory import MemoryTransport
from mailparts.imap.protocol import Transport
from mailparts.utils.mime import param_value

NESTED = (
    b"Subject: nested\r\n"
    b'Content-Type: multipart/mixed; boundary="outer"\r\n'
    b"\r\n"
    b"--outer\r\n"
    b'Content-Type: multipart/alternative; boundary="inner"\r\n'
    b"\r\n"
    b"--inner\r\n"
    b"Content-Type: text/plain\r\n"
    b"\r\n"
    b"plain\r\n"
    b"--inner\r\n"
    b"Content-Type: text/html\r\n"
    b"\r\n"
    b"<p>html</p>\r\n"
    b"--inner--\r\n"
    b"--outer\r\n"
    b"Content-Type: message/rfc822\r\n"
    b"\r\n"
    b"Subject: forwarded\r\n"
    b"\r\n"
    b"inner body\r\n"
    b"--outer\r\n"
    b"Content-Type: application/octet-stream\r\n"
    b"Content-Transfer-Encoding: base64\r\n"
    b"Content-ID: <blob@example.com>\r\n"
    b"Content-Disposition: attachment;\r\n"
    b"  filename*0=\"part-one-\";\r\n"
    b"  filename*1=\"part-two.bin\"\r\n"
    b"\r\n"
    b"AAEC\r\n"
    b"--outer--\r\n"
)


def test_satisfies_transport_protocol():
    assert isinstance(MemoryTransport(), Transport)


def test_structure_mirrors_message():
    transport = MemoryTransport({"a": NESTED})
    root = transport.fetch_body_structure("a")
    assert root.mime_type == "multipart/mixed"
    alternative, forwarded, blob = root.children
    assert [child.mime_type for child in alternative.children] == ["text/plain", "text/html"]
    assert forwarded.type is MimeType.MESSAGE and not forwarded.children
    assert blob.content_id == "blob@example.com"
    assert blob.filename == "part-one-part-two.bin"
    assert blob.disposition.is_attachment


def test_part_payloads_follow_imap_numbering():
    transport = MemoryTransport({1: NESTED})
    assert transport.fetch_part_bytes(1, "1.1") == b"plain"
    assert transport.fetch_part_bytes(1, "1.2") == b"<p>html</p>"
    assert transport.fetch_part_bytes(1, "2").startswith(b"Subject: forwarded")
    assert transport.fetch_part_bytes(1, "3").strip() == b"AAEC"
    assert transport.fetch_part_bytes(1, "").startswith(b"--outer")
    assert transport.fetch_headers(1).endswith(b"\r\n\r\n")


@pytest.mark.parametrize("address", ["4", "1.3", "0", "x", "3.2"])
def test_missing_parts_raise(address):
    transport = MemoryTransport({1: NESTED})
    with pytest.raises(TransportError):
        transport.fetch_part_bytes(1, address)


def test_single_part_body_is_part_one():
    raw = b"Subject: hi\r\n\r\nbody text"
    transport = MemoryTransport({1: raw})
    assert transport.fetch_part_bytes(1, "1") == b"body text"
    assert transport.fetch_part_bytes(1, "") == b"body text"


def test_add_and_append_assign_fresh_ids():
    transport = MemoryTransport({3: b"Subject: a\r\n\r\nx"})
    assert transport.add(b"Subject: b\r\n\r\ny") == 4
    assert transport.append_raw_message("Sent", b"Subject: c\r\n\r\nz")
    assert transport.appended == [("Sent", 5)]
    assert transport.mailbox_of(3) == "INBOX"
    assert transport.mailbox_of(5) == "Sent"
    assert 5 in transport and len(transport) == 3


def test_unknown_id_raises():
    transport = MemoryTransport()
    with pytest.raises(TransportError):
        transport.fetch_raw_message(1)
    with pytest.raises(TransportError):
        transport.mailbox_of(1)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("plain.pdf", "plain.pdf"),
        ('"quoted name.pdf"', "quoted name.pdf"),
        (("utf-8", "", "Bericht \xc3\xa4.pdf"), "Bericht ä.pdf"),
        (("utf-8", "de", '""Bericht \xc3\xa4.pdf""'), "Bericht ä.pdf"),
        ("<kept>", "<kept>"),
    ],
)
def test_param_value_collapses_and_unquotes(value, expected):
    assert param_value(value) == expected
