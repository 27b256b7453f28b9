"""mailparts command-line interface.

What:
  Provide a Typer-based entry point exposing the decode/encode core to shell
  users: decode ``.eml`` files or IMAP messages into JSON, compose messages
  from YAML documents, and run the charset and date utilities.

Why:
  Operators debugging odd messages want to see exactly what the library makes
  of them without writing Python. Routing every command through the same
  :class:`~mailparts.core.mailbox.Mailbox` facade guarantees the CLI shows the
  library's real behaviour.

How:
  Each command loads the runtime configuration implicitly through the library,
  performs one operation and prints JSON or raw message bytes on stdout.
  Library and configuration errors are reported on stderr.

Interfaces:
  ``app`` (Typer application), ``decode``, ``compose``, ``fetch``, ``date``,
  ``utf7_encode``, ``utf7_decode``, ``main``.

Invariants & Safety:
  - Exit codes follow shell expectations (``0`` success, ``1`` failure).
  - Passwords are never echoed or logged.
"""
from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

import typer

from .config.loader import ConfigLoadError, load_compose_document
from .core.charset import from_utf7_imap, to_utf7_imap
from .core.dates import parse_datetime
from .core.mailbox import Mailbox
from .errors import MailPartsError
from .imap.client import ImapConfig, ImapTransport
from .imap.memory import MemoryTransport
from .utils.logging import get_logger


app = typer.Typer(help="MIME decode/encode toolkit", no_args_is_help=True)

LOGGER = get_logger("mailparts.cli")


@contextmanager
def _reported(command: str) -> Iterator[None]:
    """Turn library failures into a message on stderr and exit code 1."""

    try:
        yield
    except (MailPartsError, ConfigLoadError, OSError) as exc:
        LOGGER.error("command_failed", command=command, error=str(exc), kind=type(exc).__name__)
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@app.command("decode")
def decode(
    path: Path = typer.Argument(..., help="Raw RFC822 message (.eml) to decode"),
    *,
    server_encoding: Optional[str] = typer.Option(
        None, "--server-encoding", help="Charset decoded text is converted into"
    ),
) -> None:
    """Decode a message file and print a JSON summary."""

    with _reported("decode"):
        raw = path.read_bytes()
        mailbox = Mailbox(MemoryTransport({1: raw}), server_encoding=server_encoding)
        message = mailbox.get_mail(1)
        _echo_json(message.to_dict())


@app.command("compose")
def compose(
    spec: Path = typer.Argument(..., help="YAML compose document"),
    *,
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the message here"),
) -> None:
    """Build a message from a YAML compose document."""

    with _reported("compose"):
        document = load_compose_document(spec.read_bytes())
        raw = document.to_compose_spec().compose()
        if output is not None:
            output.write_bytes(raw)
        else:
            typer.echo(raw, nl=False)


@app.command("fetch")
def fetch(
    uid: int = typer.Argument(..., help="UID of the message to decode"),
    *,
    host: str = typer.Option(..., "--host", help="IMAP server host"),
    username: str = typer.Option(..., "--username", help="IMAP login"),
    password: str = typer.Option(
        ..., "--password", envvar="MAILPARTS_IMAP_PASSWORD", help="IMAP password", show_default=False
    ),
    mailbox: Optional[str] = typer.Option(None, "--mailbox", help="Mailbox holding the message"),
    port: int = typer.Option(993, "--port", help="IMAP port"),
    no_ssl: bool = typer.Option(False, "--no-ssl", help="Connect without TLS"),
) -> None:
    """Decode a message straight from an IMAP server."""

    with _reported("fetch"):
        config = ImapConfig(
            host=host,
            username=username,
            password=password,
            port=port,
            ssl=not no_ssl,
            folder=mailbox,
        )
        with ImapTransport(config) as transport:
            message = Mailbox(transport).get_mail(uid)
            _echo_json(message.to_dict())


@app.command("date")
def date(value: str = typer.Argument(..., help="Date header value")) -> None:
    """Normalise a Date header value."""

    with _reported("date"):
        result = parse_datetime(value)
        _echo_json({"value": result.value, "timestamp": result.timestamp, "parsed": result.parsed})


@app.command("utf7-encode")
def utf7_encode(text: str = typer.Argument(..., help="Mailbox name to encode")) -> None:
    """Encode a mailbox name with modified UTF-7."""

    typer.echo(to_utf7_imap(text).decode("ascii"))


@app.command("utf7-decode")
def utf7_decode(text: str = typer.Argument(..., help="Modified UTF-7 mailbox name")) -> None:
    """Decode a modified UTF-7 mailbox name."""

    with _reported("utf7-decode"):
        try:
            typer.echo(from_utf7_imap(text))
        except (UnicodeError, ValueError) as exc:
            raise MailPartsError(f"not a modified UTF-7 name: {text!r}") from exc


def main() -> None:
    """Execute the Typer application entry point."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
