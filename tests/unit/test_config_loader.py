"""
Module: tests/unit/test_config_loader.py

What:
    Validate runtime configuration discovery, caching and schema checks as
    well as compose document parsing.

Why:
    A typo in the server encoding or an invalid line length must stop the tool
    before it decodes or writes any mail, and a stale cache must never leak
    settings between runs.

How:
    Write YAML payloads to temporary files, load them through the public
    helpers and assert on the typed models and raised exceptions.

Invariants & Safety Rules:
    - The autouse fixture points ``MAILPARTS_CONFIG_PATH`` at
      ``tests/data/config.yaml`` and clears the cache around every test.
"""

import pytest

from mailparts.config.loader import (
    CONFIG_ENV,
    ConfigLoadError,
    RuntimeConfigError,
    get_runtime_config,
    load_compose_document,
    load_runtime_config,
    reset_runtime_config,
)
from mailparts.config.schema import ComposeSettings, RuntimeConfig
from mailparts.core.structure import MimeType
from mailparts.core.transfer import TransferEncoding


def test_env_config_is_loaded_and_normalised():
    config = get_runtime_config()
    assert config.codec.server_encoding == "UTF-8"
    assert config.compose.boundary_prefix == "=_test_"
    assert config.imap.append_mailbox == "Archive"
    assert config.imap.max_actions_per_minute == 3


def test_runtime_config_is_cached(tmp_path, monkeypatch):
    first = get_runtime_config()
    path = tmp_path / "other.yaml"
    path.write_text("version: 1\ncompose:\n  boundary_prefix: '=_other_'\n")
    monkeypatch.setenv(CONFIG_ENV, str(path))
    assert get_runtime_config() is first
    assert load_runtime_config(reload=True).compose.boundary_prefix == "=_other_"


def test_explicit_path_wins(tmp_path):
    path = tmp_path / "mailparts.yaml"
    path.write_text("version: 1\ncodec:\n  server_encoding: iso-8859-1\n")
    config = load_runtime_config(path)
    assert config.codec.server_encoding == "ISO-8859-1"
    assert load_runtime_config(str(path)) is config


def test_missing_required_file_raises(tmp_path):
    with pytest.raises(RuntimeConfigError):
        load_runtime_config(tmp_path / "absent.yaml")


def test_defaults_apply_without_any_file(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV)
    monkeypatch.chdir(tmp_path)
    reset_runtime_config()
    config = get_runtime_config()
    assert config == RuntimeConfig()
    assert config.compose.boundary_prefix == "=_mailparts_"


@pytest.mark.parametrize(
    "payload",
    [
        "version: 2\n",
        "codec:\n  server_encoding: UTF8\n",
        "codec:\n  default_charset: x-no-such-charset\n",
        "compose:\n  line_length: 75\n",
        "compose:\n  line_length: 1000\n",
        "compose:\n  boundary_prefix: 'has space'\n",
        "compose:\n  max_boundary_attempts: 0\n",
        "unknown_section: {}\n",
        "- just\n- a list\n",
        "codec: [unbalanced\n",
    ],
)
def test_invalid_payloads_raise(tmp_path, payload):
    path = tmp_path / "bad.yaml"
    path.write_text(payload)
    with pytest.raises(RuntimeConfigError):
        load_runtime_config(path)


def test_runtime_config_error_is_config_load_error():
    assert issubclass(RuntimeConfigError, ConfigLoadError)


def test_compose_settings_defaults():
    settings = ComposeSettings()
    assert settings.line_length == 76
    assert settings.max_boundary_attempts == 8


COMPOSE_DOCUMENT = b"""
envelope:
  subject: Quarterly report
  from: Alice <alice@example.com>
  to: [bob@example.com, carol@example.com]
  custom_headers:
    X-Mailer: mailparts
parts:
  - content: See attachment.
  - type: APPLICATION
    subtype: pdf
    encoding: BASE64
    disposition_type: attachment
    disposition:
      filename: report.pdf
    content: "%PDF"
"""


def test_load_compose_document():
    document = load_compose_document(COMPOSE_DOCUMENT)
    spec = document.to_compose_spec()
    assert spec.envelope.from_ == "Alice <alice@example.com>"
    assert spec.envelope.to == ["bob@example.com", "carol@example.com"]
    assert spec.envelope.custom_headers == [("X-Mailer", "mailparts")]
    text, pdf = spec.parts
    assert text.type is MimeType.TEXT and text.charset == "US-ASCII"
    assert pdf.encoding is TransferEncoding.BASE64
    assert pdf.disposition["filename"] == "report.pdf"
    raw = spec.compose(boundary="=_doc_")
    assert b"X-Mailer: mailparts\r\n" in raw
    assert b"JVBERg==" in raw


@pytest.mark.parametrize(
    "payload",
    [
        b"envelope:\n  from: a@example.com\nparts:\n  - content: x\n",
        b"envelope:\n  subject: x\nparts: []\n",
        b"envelope:\n  subject: x\nparts:\n  - content: x\n    path: /tmp/x\n",
        b"envelope:\n  subject: x\nparts:\n  - colour: red\n",
        b"\xff\xfe",
        b"[1, 2]",
    ],
)
def test_invalid_compose_documents_raise(payload):
    with pytest.raises(ConfigLoadError):
        load_compose_document(payload)
