"""
Template validation and rendering.

Caller parameters are checked against the stored template schema before any
network call, then rendered into the Cloud API component list:

    [{"type": "header", "parameters": [...]},
     {"type": "body", "parameters": [...]},
     {"type": "button", "sub_type": "quick_reply", "index": "0", "parameters": [...]}]

Only dynamic components are emitted; static template text stays on the
provider side.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any

from wagate.core.errors import TemplateParamMismatch
from wagate.domain.models import HeaderFormat, Template
from wagate.messaging.whatsapp.models.template_models import (
    MediaHeader,
    TemplateButtonParam,
    TemplateParameter,
)

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z0-9_]+)\s*\}\}")


@dataclass
class RenderedTemplate:
    name: str
    language_code: str
    components: list[dict[str, Any]] = field(default_factory=list)
    rendered_text: str = ""

    def to_wire(self) -> dict[str, Any]:
        """The `template` object of a Cloud API message payload."""
        template: dict[str, Any] = {
            "name": self.name,
            "language": {"code": self.language_code},
        }
        if self.components:
            template["components"] = self.components
        return template

    def envelope_json(self) -> str:
        """Serialized render stored alongside the conversation row."""
        return json.dumps(
            {
                "name": self.name,
                "language": self.language_code,
                "components": self.components,
                "rendered_text": self.rendered_text,
            },
            separators=(",", ":"),
        )


class TemplateRenderer:
    """Stateless validator and renderer for stored templates."""

    def validate(
        self,
        template: Template,
        header_params: list[TemplateParameter],
        body_params: list[TemplateParameter],
        buttons: list[TemplateButtonParam],
        media_header: MediaHeader | None = None,
    ) -> None:
        """
        Check caller parameters against the template schema.

        Raises:
            TemplateParamMismatch: On any count, format or sub-type mismatch
        """
        header = template.header

        # Header media
        if template.has_media_header:
            expected = header.format.value.lower()
            if media_header is None and not header.example_media_handle:
                raise TemplateParamMismatch(
                    f"Template '{template.name}' requires a {expected} header",
                    field="media_header",
                )
            if media_header is not None and media_header.type.value != expected:
                raise TemplateParamMismatch(
                    f"Template '{template.name}' header expects {expected}, "
                    f"got {media_header.type.value}",
                    field="media_header",
                )
        elif media_header is not None:
            raise TemplateParamMismatch(
                f"Template '{template.name}' has no media header",
                field="media_header",
            )

        # Header text parameters
        expected_header = (
            len(header.parameter_names)
            if header is not None and header.format == HeaderFormat.TEXT
            else 0
        )
        if len(header_params) != expected_header:
            raise TemplateParamMismatch(
                f"Template '{template.name}' expects {expected_header} header "
                f"parameter(s), got {len(header_params)}",
                field="header_params",
                details={"expected": expected_header, "received": len(header_params)},
            )

        # Body parameters
        expected_body = len(template.body_parameter_names)
        if len(body_params) != expected_body:
            raise TemplateParamMismatch(
                f"Template '{template.name}' expects {expected_body} body "
                f"parameter(s), got {len(body_params)}",
                field="template_params",
                details={"expected": expected_body, "received": len(body_params)},
            )

        # Buttons
        if len(buttons) != len(template.buttons):
            raise TemplateParamMismatch(
                f"Template '{template.name}' expects {len(template.buttons)} "
                f"button(s), got {len(buttons)}",
                field="template_buttons",
                details={"expected": len(template.buttons), "received": len(buttons)},
            )
        requested_indices = [button.index for button in buttons]
        if len(set(requested_indices)) != len(requested_indices):
            raise TemplateParamMismatch(
                f"Template '{template.name}' buttons repeat an index",
                field="template_buttons",
                details={"indices": requested_indices},
            )
        stored_buttons = {button.index: button for button in template.buttons}
        for button in buttons:
            stored = stored_buttons.get(button.index)
            if stored is None:
                raise TemplateParamMismatch(
                    f"Template '{template.name}' has no button at index {button.index}",
                    field="template_buttons",
                )
            if stored.sub_type != button.sub_type:
                raise TemplateParamMismatch(
                    f"Button index {button.index} sub_type mismatch: expected "
                    f"{stored.sub_type.value}, got {button.sub_type.value}",
                    field="template_buttons",
                )

    def render(
        self,
        template: Template,
        header_params: list[TemplateParameter],
        body_params: list[TemplateParameter],
        buttons: list[TemplateButtonParam],
        media_header: MediaHeader | None = None,
    ) -> RenderedTemplate:
        """Validate, then build wire components and the rendered body text."""
        self.validate(template, header_params, body_params, buttons, media_header)

        named = template.uses_named_parameters
        components: list[dict[str, Any]] = []

        header_parameters: list[dict[str, Any]] = []
        if media_header is not None:
            header_parameters.append(media_header.to_wire())
        if header_params:
            names = template.header.parameter_names
            header_parameters.extend(
                param.to_wire(names[i] if named else None)
                for i, param in enumerate(header_params)
            )
        if header_parameters:
            components.append({"type": "header", "parameters": header_parameters})

        if body_params:
            names = template.body_parameter_names
            components.append(
                {
                    "type": "body",
                    "parameters": [
                        param.to_wire(names[i] if named else None)
                        for i, param in enumerate(body_params)
                    ],
                }
            )

        for button in sorted(buttons, key=lambda b: b.index):
            components.append(button.to_wire())

        return RenderedTemplate(
            name=template.name,
            language_code=template.language_code,
            components=components,
            rendered_text=self.render_text(template, body_params),
        )

    @staticmethod
    def render_text(template: Template, body_params: list[TemplateParameter]) -> str:
        """Best-effort body text with placeholders replaced; unknown slots kept."""
        if not template.body_text:
            return template.name
        values = {
            name: param.display_text
            for name, param in zip(template.body_parameter_names, body_params)
        }
        # Positional placeholders also resolve by position
        for i, param in enumerate(body_params, start=1):
            values.setdefault(str(i), param.display_text)

        return _PLACEHOLDER.sub(
            lambda m: values.get(m.group(1), m.group(0)), template.body_text
        )
