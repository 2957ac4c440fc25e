"""
Stored template schema.

Mirrors what the provider approved: an optional header, a body with ordered
parameter slots and a fixed list of buttons.
"""

from enum import Enum

from pydantic import BaseModel, Field

from .tenant import new_id


class HeaderFormat(str, Enum):
    TEXT = "TEXT"
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    DOCUMENT = "DOCUMENT"

    @property
    def is_media(self) -> bool:
        return self is not HeaderFormat.TEXT


class ButtonSubType(str, Enum):
    QUICK_REPLY = "quick_reply"
    CTA_PHONE = "cta_phone"
    CTA_URL = "cta_url"


class TemplateHeader(BaseModel):
    format: HeaderFormat
    text: str | None = None
    parameter_names: list[str] = Field(default_factory=list)
    example_media_handle: str | None = Field(
        None, description="Approved example media, used when no header media is sent"
    )


class TemplateButton(BaseModel):
    sub_type: ButtonSubType
    index: int = Field(..., ge=0)
    text: str | None = None


class Template(BaseModel):
    """Tenant-scoped message template."""

    id: str = Field(default_factory=new_id)
    tenant_id: str
    name: str = Field(..., min_length=1, max_length=512)
    language_code: str = "en"
    category: str = "utility"
    active: bool = True
    header: TemplateHeader | None = None
    body_text: str = ""
    body_parameter_names: list[str] = Field(default_factory=list)
    buttons: list[TemplateButton] = Field(default_factory=list)

    @property
    def has_media_header(self) -> bool:
        return self.header is not None and self.header.format.is_media

    @property
    def uses_named_parameters(self) -> bool:
        """Numeric slot names ("1", "2") are positional, anything else is named."""
        names = self.body_parameter_names
        if self.header is not None:
            names = names + self.header.parameter_names
        return any(not name.isdigit() for name in names)
