"""
Module: tests/unit/test_structure.py

What:
    Cover the body-structure data model and the decoded-message records.

Why:
    Every classification decision reads these nodes, so coercion of loose
    inputs and the multipart/leaf invariant have to hold before the walker ever
    sees a tree.

How:
    Construct nodes from strings and dictionaries, assert the derived helpers
    and check that attachments refuse to serve content until bound.
"""

import pytest

from fakes import CountingTransport
from mailparts.core.models import Attachment, DecodedMessage
from mailparts.core.structure import BodyStructureNode, Disposition, MimeType, Parameters
from mailparts.core.transfer import DataReference, TransferEncoding
from mailparts.errors import DataNotYetAttachedError, InvalidArgumentError


@pytest.mark.parametrize(
    "value, expected",
    [
        ("text", MimeType.TEXT),
        (b"Multipart", MimeType.MULTIPART),
        (" image ", MimeType.IMAGE),
        ("x-custom", MimeType.OTHER),
        (None, MimeType.OTHER),
    ],
)
def test_mime_type_parse(value, expected):
    assert MimeType.parse(value) is expected


def test_parameters_are_case_insensitive_and_ordered():
    params = Parameters([("Name", "a.txt"), ("CHARSET", "utf-8"), ("format", "flowed")])
    assert params["name"] == "a.txt"
    assert params.get("Charset") == "utf-8"
    assert "FORMAT" in params
    assert list(params) == ["Name", "CHARSET", "format"]
    assert params == {"name": "a.txt", "charset": "utf-8", "format": "flowed"}
    assert hash(params) == hash(Parameters({"NAME": "a.txt", "charset": "utf-8", "Format": "flowed"}))


def test_node_coerces_loose_inputs():
    node = BodyStructureNode(
        "text",
        "plain",
        parameters={"charset": "ISO-8859-1"},
        encoding="quoted-printable",
        size="12",
        disposition=Disposition("INLINE", {"filename": "note.txt"}),
        id="<part1@example.com>",
    )
    assert node.type is MimeType.TEXT
    assert node.subtype == "PLAIN"
    assert node.encoding is TransferEncoding.QUOTED_PRINTABLE
    assert node.size == 12
    assert node.mime_type == "text/plain"
    assert node.charset == "ISO-8859-1"
    assert node.content_id == "part1@example.com"
    assert node.filename == "note.txt"
    assert node.disposition.is_inline and not node.disposition.is_attachment


def test_filename_falls_back_to_name_parameter():
    node = BodyStructureNode(MimeType.APPLICATION, "pdf", parameters={"name": "report.pdf"})
    assert node.filename == "report.pdf"
    assert BodyStructureNode(MimeType.APPLICATION, "pdf").filename is None


def test_multipart_requires_children():
    with pytest.raises(InvalidArgumentError):
        BodyStructureNode(MimeType.MULTIPART, "mixed")


def test_leaf_rejects_children():
    child = BodyStructureNode(MimeType.TEXT, "plain")
    with pytest.raises(InvalidArgumentError):
        BodyStructureNode(MimeType.TEXT, "plain", children=[child])


def test_to_dict_nests_children():
    root = BodyStructureNode(
        MimeType.MULTIPART,
        "alternative",
        parameters={"boundary": "b1"},
        children=[BodyStructureNode(MimeType.TEXT, "plain"), BodyStructureNode(MimeType.TEXT, "html")],
    )
    data = root.to_dict()
    assert data["type"] == "MULTIPART"
    assert data["parameters"] == {"boundary": "b1"}
    assert [child["subtype"] for child in data["children"]] == ["PLAIN", "HTML"]
    assert root.is_multipart and not root.children[0].is_multipart


def test_attachment_without_reference_raises():
    attachment = Attachment(id="2", name="a.bin")
    assert not attachment.has_data_reference
    with pytest.raises(DataNotYetAttachedError):
        attachment.get_contents()


def test_attachment_contents_come_from_bound_reference(tmp_path):
    transport = CountingTransport(parts={"2": b"raw bytes"})
    attachment = Attachment(id="2", part_address="2")
    attachment.add_data_reference(DataReference(transport, 1, "2"))
    assert attachment.get_contents() == b"raw bytes"
    assert attachment.get_contents() == b"raw bytes"
    assert transport.calls_for("2") == 1

    assert not attachment.is_file_path_set()
    attachment.set_file_path(tmp_path / "a.bin")
    assert attachment.is_file_path_set()
    assert attachment.get_file_path() == tmp_path / "a.bin"


@pytest.mark.parametrize(
    "content, declared, name, expected",
    [
        (b"%PDF-1.4 ...", "application/octet-stream", "scan", "application/pdf"),
        (b"\x89PNG\r\n\x1a\n....", "application/pdf", None, "image/png"),
        (b"plain words", "application/octet-stream", "notes.txt", "text/plain"),
        (b"plain words", "text/csv", "data.bin", "text/csv"),
        (b"\x00\x01", "application/octet-stream", None, "application/octet-stream"),
    ],
)
def test_attachment_mime_type_is_detected_from_content(content, declared, name, expected):
    transport = CountingTransport(parts={"2": content})
    attachment = Attachment(id="2", name=name, mime_type=declared, part_address="2")
    attachment.add_data_reference(DataReference(transport, 1, "2"))
    assert attachment.get_mime_type() == expected
    assert attachment.get_mime_type() == expected
    assert attachment.mime_type == declared
    assert transport.calls_for("2") == 1


def test_attachment_mime_type_needs_a_reference():
    with pytest.raises(DataNotYetAttachedError):
        Attachment(id="3").get_mime_type()


def test_decoded_message_returns_attachment_copies():
    message = DecodedMessage(message_id=b"5", attachments=[Attachment(id="1")], to_list=["a@example.com"])
    copy = message.get_attachments()
    copy.clear()
    assert len(message.attachments) == 1
    data = message.to_dict()
    assert data["message_id"] == "5"
    assert data["to"] == ["a@example.com"]
    assert data["attachments"][0]["id"] == "1"
