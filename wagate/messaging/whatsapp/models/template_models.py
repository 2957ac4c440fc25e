"""
WhatsApp template parameter models.

Caller-supplied header, body and button parameters, validated per type and
serialized to the Cloud API parameter envelopes:

    {"type": "text", "text": "..."}
    {"type": "currency", "currency": {"fallback_value", "code", "amount_1000"}}
    {"type": "date_time", "date_time": {"fallback_value"}}
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from wagate.domain.models.template import ButtonSubType


class TemplateParameterType(str, Enum):
    """Template parameter types accepted in header and body components."""

    TEXT = "text"
    CURRENCY = "currency"
    DATE_TIME = "date_time"


class CurrencyValue(BaseModel):
    fallback_value: str = Field(..., min_length=1)
    code: str = Field(..., min_length=3, max_length=3, description="ISO 4217 code")
    amount_1000: int = Field(..., description="Amount multiplied by 1000")


class DateTimeValue(BaseModel):
    fallback_value: str = Field(..., min_length=1)


class TemplateParameter(BaseModel):
    """Template parameter for dynamic content replacement."""

    type: TemplateParameterType = Field(..., description="Parameter type")
    text: str | None = Field(None, max_length=1024)
    currency: CurrencyValue | None = None
    date_time: DateTimeValue | None = None

    @model_validator(mode="after")
    def validate_type_fields(self):
        """Each type carries its own value object."""
        if self.type == TemplateParameterType.TEXT and not self.text:
            raise ValueError("text parameter missing text value")
        if self.type == TemplateParameterType.CURRENCY and self.currency is None:
            raise ValueError(
                "currency parameter missing required fields (fallback_value, code, amount_1000)"
            )
        if self.type == TemplateParameterType.DATE_TIME and self.date_time is None:
            raise ValueError("date_time parameter missing fallback_value")
        return self

    @property
    def display_text(self) -> str:
        """Text used when rendering the body locally."""
        if self.type == TemplateParameterType.CURRENCY:
            return self.currency.fallback_value
        if self.type == TemplateParameterType.DATE_TIME:
            return self.date_time.fallback_value
        return self.text

    def to_wire(self, parameter_name: str | None = None) -> dict[str, Any]:
        wire: dict[str, Any] = {"type": self.type.value}
        if self.type == TemplateParameterType.TEXT:
            wire["text"] = self.text
        elif self.type == TemplateParameterType.CURRENCY:
            wire["currency"] = self.currency.model_dump()
        else:
            wire["date_time"] = self.date_time.model_dump()
        if parameter_name:
            wire["parameter_name"] = parameter_name
        return wire


class TemplateButtonParam(BaseModel):
    """Dynamic value for one template button."""

    sub_type: ButtonSubType
    index: int = Field(..., ge=0, le=9)
    payload: str | None = None
    phone_number: str | None = None
    url: str | None = None

    @model_validator(mode="after")
    def validate_sub_type_fields(self):
        if self.sub_type == ButtonSubType.QUICK_REPLY and not self.payload:
            raise ValueError("quick_reply button missing payload")
        if self.sub_type == ButtonSubType.CTA_PHONE and not self.phone_number:
            raise ValueError("cta_phone button missing phone_number")
        if self.sub_type == ButtonSubType.CTA_URL and not self.url:
            raise ValueError("cta_url button missing url")
        return self

    def to_wire(self) -> dict[str, Any]:
        if self.sub_type == ButtonSubType.QUICK_REPLY:
            parameter = {"type": "payload", "payload": self.payload}
        elif self.sub_type == ButtonSubType.CTA_PHONE:
            parameter = {"type": "phone_number", "phone_number": self.phone_number}
        else:
            parameter = {"type": "url", "url": self.url}
        return {
            "type": "button",
            "sub_type": self.sub_type.value,
            "index": str(self.index),
            "parameters": [parameter],
        }


class MediaHeaderType(str, Enum):
    """Media types supported in template headers."""

    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"


class MediaHeader(BaseModel):
    """Template media header given as an existing provider id or a public link."""

    type: MediaHeaderType
    id: str | None = None
    link: str | None = None

    @model_validator(mode="after")
    def validate_source(self):
        if not self.id and not self.link:
            raise ValueError("media_header must specify type and either id or link")
        return self

    def to_wire(self) -> dict[str, Any]:
        source = {"id": self.id} if self.id else {"link": self.link}
        return {"type": self.type.value, self.type.value: source}
