"""Pydantic models describing mailparts configuration and compose documents."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.charset import Charset, lookup_codec, normalize_name
from ..errors import UnsupportedCharsetError

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..core.composer import ComposeSpec


class ValidationError(ValueError):
    """Raised when configuration data does not satisfy the schema."""


class CodecSettings(BaseModel):
    """Charset defaults used while decoding."""

    model_config = ConfigDict(extra="forbid")

    server_encoding: str = Charset.UTF_8.value
    default_charset: str = Charset.US_ASCII.value
    attachments_ignore: bool = False

    @field_validator("server_encoding", mode="before")
    @classmethod
    def _validate_server_encoding(cls, value: Any) -> str:
        try:
            return normalize_name(value).value
        except UnsupportedCharsetError as exc:
            raise ValidationError(str(exc)) from exc

    @field_validator("default_charset", mode="before")
    @classmethod
    def _validate_default_charset(cls, value: Any) -> str:
        try:
            lookup_codec(value)
        except UnsupportedCharsetError as exc:
            raise ValidationError(str(exc)) from exc
        return str(value).strip().upper()


class ComposeSettings(BaseModel):
    """Knobs for message composition."""

    model_config = ConfigDict(extra="forbid")

    boundary_prefix: str = Field(default="=_mailparts_", max_length=40)
    max_boundary_attempts: int = Field(default=8, gt=0)
    line_length: int = Field(default=76, ge=4, le=996)

    @model_validator(mode="after")
    def _validate_line_length(self) -> "ComposeSettings":
        if self.line_length % 4:
            raise ValidationError("line_length must be a multiple of 4")
        if any(ch.isspace() for ch in self.boundary_prefix) or not self.boundary_prefix.isascii():
            raise ValidationError("boundary_prefix must be printable ASCII without whitespace")
        return self


class ImapSettings(BaseModel):
    """Server level IMAP defaults."""

    model_config = ConfigDict(extra="forbid")

    default_mailbox: str = "INBOX"
    append_mailbox: Optional[str] = None
    max_actions_per_minute: int = Field(default=500, gt=0)


class RuntimeConfig(BaseModel):
    """Root configuration loaded from ``mailparts.yaml``."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    codec: CodecSettings = Field(default_factory=CodecSettings)
    compose: ComposeSettings = Field(default_factory=ComposeSettings)
    imap: ImapSettings = Field(default_factory=ImapSettings)

    @field_validator("version")
    @classmethod
    def _validate_version(cls, value: int) -> int:
        if value != 1:
            raise ValidationError("config version must be 1")
        return value


class EnvelopeDocument(BaseModel):
    """Envelope section of a compose document."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    subject: str
    from_: Optional[Union[str, List[str]]] = Field(default=None, alias="from")
    to: Optional[Union[str, List[str]]] = None
    cc: Optional[Union[str, List[str]]] = None
    bcc: Optional[Union[str, List[str]]] = None
    reply_to: Optional[Union[str, List[str]]] = None
    date: Optional[str] = None
    message_id: Optional[str] = None
    in_reply_to: Optional[str] = None
    references: Optional[str] = None
    custom_headers: Dict[str, str] = Field(default_factory=dict)


class BodyPartDocument(BaseModel):
    """One body part of a compose document."""

    model_config = ConfigDict(extra="forbid")

    type: str = "TEXT"
    subtype: Optional[str] = None
    encoding: str = "7BIT"
    charset: Optional[str] = None
    description: Optional[str] = None
    id: Optional[str] = None
    disposition_type: Optional[str] = None
    disposition: Dict[str, str] = Field(default_factory=dict)
    type_parameters: Dict[str, str] = Field(default_factory=dict)
    content: Optional[str] = None
    path: Optional[str] = None

    @model_validator(mode="after")
    def _validate_source(self) -> "BodyPartDocument":
        if self.content is not None and self.path is not None:
            raise ValidationError("a body part takes either content or path, not both")
        return self


class ComposeDocument(BaseModel):
    """YAML document consumed by ``mailparts compose``."""

    model_config = ConfigDict(extra="forbid")

    envelope: EnvelopeDocument
    parts: List[BodyPartDocument] = Field(min_length=1)

    def to_compose_spec(self) -> "ComposeSpec":
        from ..core.composer import BodyPartSpec, ComposeSpec, Envelope

        envelope = Envelope(**self.envelope.model_dump(by_alias=False))
        parts = [BodyPartSpec(**part.model_dump()) for part in self.parts]
        return ComposeSpec(envelope=envelope, parts=parts)


__all__ = [
    "ValidationError",
    "CodecSettings",
    "ComposeSettings",
    "ImapSettings",
    "RuntimeConfig",
    "EnvelopeDocument",
    "BodyPartDocument",
    "ComposeDocument",
]
