"""
Module: tests/unit/test_imap_client.py

What:
    Exercise the ``imapclient`` backed transport against an in-memory backend
    and the conversion of ``BODYSTRUCTURE`` responses.

Why:
    The transport must never mark messages as read, must translate library
    failures into :class:`TransportError` and must respect the configured
    action budget.

How:
    Monkeypatch ``IMAPClient`` with :class:`fakes.FakeImapBackend`, store raw
    messages with hand-written ``BODYSTRUCTURE`` tuples and inspect the issued
    fetch items alongside the returned data.
"""

import pytest
from imapclient.exceptions import IMAPClientError

from mailparts.core.mailbox import Mailbox
from mailparts.core.structure import MimeType
from mailparts.core.transfer import TransferEncoding
from mailparts.errors import TransportError
from mailparts.imap.client import ImapConfig, ImapTransport, structure_from_imap

RAW = (
    b"From: Alice <alice@example.com>\r\n"
    b"Subject: Quarterly report\r\n"
    b"MIME-Version: 1.0\r\n"
    b'Content-Type: multipart/mixed; boundary="xyz"\r\n'
    b"\r\n"
    b"--xyz\r\n"
    b"Content-Type: text/plain; charset=utf-8\r\n"
    b"\r\n"
    b"hello\r\n"
    b"--xyz\r\n"
    b"Content-Type: application/pdf; name=a.pdf\r\n"
    b"Content-Transfer-Encoding: base64\r\n"
    b"Content-Disposition: attachment; filename*=utf-8''Bericht%20%C3%A4.pdf\r\n"
    b"\r\n"
    b"JVBERg==\r\n"
    b"--xyz--\r\n"
)

TEXT_PART = (b"TEXT", b"PLAIN", (b"CHARSET", b"UTF-8"), None, None, b"7BIT", 5, 1, None, None, None, None)
PDF_PART = (
    b"APPLICATION",
    b"PDF",
    (b"NAME", b"a.pdf"),
    None,
    None,
    b"BASE64",
    8,
    None,
    (b"ATTACHMENT", (b"FILENAME*", b"utf-8''Bericht%20%C3%A4.pdf")),
    None,
    None,
)
STRUCTURE = ([TEXT_PART, PDF_PART], b"MIXED", (b"BOUNDARY", b"xyz"), None, None, None)


def test_structure_from_imap_multipart():
    root = structure_from_imap(STRUCTURE)
    assert root.is_multipart
    assert root.subtype == "MIXED"
    assert root.parameters["boundary"] == "xyz"
    text, pdf = root.children
    assert text.mime_type == "text/plain"
    assert text.charset == "UTF-8"
    assert text.size == 5
    assert text.disposition is None
    assert pdf.encoding is TransferEncoding.BASE64
    assert pdf.disposition.is_attachment
    assert pdf.filename == "Bericht ä.pdf"
    assert pdf.parameters["name"] == "a.pdf"


def test_structure_from_imap_leaf_variants():
    image = structure_from_imap((b"IMAGE", b"PNG", None, b"<logo@example.com>", b"Logo", b"BASE64", 8))
    assert image.type is MimeType.IMAGE
    assert image.content_id == "logo@example.com"
    assert image.description == "Logo"
    assert image.disposition is None

    continued = structure_from_imap(
        (b"APPLICATION", b"OCTET-STREAM", (b"NAME*0", b"very-long-", b"NAME*1", b"name.bin"), None, None, b"7BIT", 3)
    )
    assert continued.filename == "very-long-name.bin"

    inline_text = structure_from_imap(
        (b"TEXT", b"HTML", (b"CHARSET", b"us-ascii"), None, None, b"7BIT", 10, 1, None, (b"INLINE", None), None)
    )
    assert inline_text.disposition.is_inline


def test_connect_selects_mailbox_read_only(imap_transport):
    transport, backend = imap_transport
    assert backend.logged_in == ("user", "pass")
    assert backend.selected == "INBOX"
    assert backend.readonly is True
    assert transport.config.max_actions_per_minute == 3


def test_context_exit_logs_out(imap_backend):
    with ImapTransport(ImapConfig(host="localhost", username="user", password="pass")):
        pass
    assert imap_backend.logged_out


def test_unknown_folder_raises_transport_error(imap_backend):
    config = ImapConfig(host="localhost", username="user", password="pass", folder="Nope")
    with pytest.raises(TransportError):
        with ImapTransport(config):
            pass


def test_fetches_use_peek_sections(imap_transport):
    transport, backend = imap_transport
    uid = backend.add(RAW, STRUCTURE)

    assert transport.fetch_body_structure(uid).children[1].filename == "Bericht ä.pdf"
    assert transport.fetch_part_bytes(uid, "1") == b"hello"
    assert transport.fetch_part_bytes(uid, "2").strip() == b"JVBERg=="
    assert transport.fetch_headers(uid).startswith(b"From: Alice")
    assert transport.fetch_raw_message(uid) == RAW
    assert transport.fetch_part_bytes(uid, "").startswith(b"--xyz")

    items = [item for _, fetched in backend.fetch_calls for item in fetched]
    assert items == [
        "BODYSTRUCTURE",
        "BODY.PEEK[1]",
        "BODY.PEEK[2]",
        "BODY.PEEK[HEADER]",
        "BODY.PEEK[]",
        "BODY.PEEK[TEXT]",
    ]


def test_mailbox_over_imap_transport(imap_transport):
    transport, backend = imap_transport
    uid = backend.add(RAW, STRUCTURE)
    message = Mailbox(transport).get_mail(uid)
    assert message.subject == "Quarterly report"
    assert message.text_plain == "hello"
    (attachment,) = message.attachments
    assert attachment.name == "Bericht ä.pdf"
    assert attachment.get_contents() == b"%PDF"


def test_unknown_uid_raises_transport_error(imap_transport):
    transport, _ = imap_transport
    with pytest.raises(TransportError):
        transport.fetch_headers(42)


def test_client_errors_become_transport_errors(imap_transport):
    transport, backend = imap_transport
    uid = backend.add(RAW, STRUCTURE)
    backend.fail_with = IMAPClientError("connection reset")
    with pytest.raises(TransportError):
        transport.fetch_raw_message(uid)
    with pytest.raises(TransportError):
        transport.append_raw_message("Archive", RAW)


def test_append_respects_action_budget(imap_transport):
    transport, backend = imap_transport
    for _ in range(3):
        assert transport.append_raw_message("Archive", RAW)
    with pytest.raises(TransportError):
        transport.append_raw_message("Archive", RAW)
    assert [folder for folder, _ in backend.appended] == ["Archive"] * 3


def test_config_repr_hides_password():
    config = ImapConfig(host="imap.example.com", username="user", password="s3cret")
    assert "s3cret" not in repr(config)
    assert config.folder == "INBOX"
