"""
Outbound send request and response models.

The request is loose on `type` and `customer_phone`: unknown
types and malformed numbers are reported by the composer with their own
error codes rather than as request-shape errors.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from .template_models import MediaHeader, TemplateButtonParam, TemplateParameter


class SendMessageRequest(BaseModel):
    """Generic "send a message" request naming its tenant."""

    tenant_id: str = Field(..., min_length=1)
    customer_phone: str = Field(..., min_length=1)
    type: str = Field(
        ..., description="text, image, video, audio, document or template"
    )
    category: str = Field(default="utility")
    is_promotional: bool = False

    # Free-form content
    message: str | None = Field(None, max_length=4096)
    media_id: str | None = None
    media_ids: list[str] = Field(default_factory=list)
    caption: str | None = Field(None, max_length=1024)
    filename: str | None = None

    # Template content
    template_name: str | None = None
    template_params: list[TemplateParameter] = Field(default_factory=list)
    header_params: list[TemplateParameter] = Field(default_factory=list)
    template_buttons: list[TemplateButtonParam] = Field(default_factory=list)
    media_header: MediaHeader | None = None

    @field_validator("type")
    @classmethod
    def normalize_type(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def all_media_ids(self) -> list[str]:
        """media_ids, or the single media_id, in request order."""
        if self.media_ids:
            return list(self.media_ids)
        return [self.media_id] if self.media_id else []


class DispatchResult(BaseModel):
    """Outcome of one dispatched payload."""

    index: int
    success: bool
    message_id: str | None = None
    media_url: str | None = None
    error: str | None = None
    error_details: dict[str, Any] | None = None


class SendMessageResponse(BaseModel):
    success: bool
    message_ids: list[str] = Field(default_factory=list)
    stored_message_count: int = 0
    per_item_results: list[DispatchResult] = Field(default_factory=list)
    used_template: str | None = None
