"""
Tests for template validation and rendering.
"""

import json

import pytest

from wagate.core.errors import TemplateParamMismatch
from wagate.domain.models import HeaderFormat, TemplateButton, TemplateHeader
from wagate.gateway.templates import TemplateRenderer
from wagate.messaging.whatsapp.models import (
    MediaHeader,
    TemplateButtonParam,
    TemplateParameter,
)

from ..factories import make_image_header_template, make_template


def text_param(value: str) -> TemplateParameter:
    return TemplateParameter(type="text", text=value)


@pytest.fixture
def renderer() -> TemplateRenderer:
    return TemplateRenderer()


class TestValidate:
    def test_too_few_body_params(self, renderer):
        template = make_template("t1")

        with pytest.raises(TemplateParamMismatch) as exc_info:
            renderer.validate(template, [], [text_param("Jane")], [])

        assert exc_info.value.details["expected"] == 2
        assert exc_info.value.details["received"] == 1

    def test_too_many_body_params(self, renderer):
        template = make_template("t1")
        params = [text_param("Jane"), text_param("#42"), text_param("extra")]

        with pytest.raises(TemplateParamMismatch) as exc_info:
            renderer.validate(template, [], params, [])

        assert exc_info.value.details["received"] == 3

    def test_header_text_param_count(self, renderer):
        template = make_template(
            "t1",
            header=TemplateHeader(
                format=HeaderFormat.TEXT, text="Order {{1}}", parameter_names=["1"]
            ),
        )

        with pytest.raises(TemplateParamMismatch) as exc_info:
            renderer.validate(template, [], [text_param("a"), text_param("b")], [])

        assert exc_info.value.details["field"] == "header_params"

    def test_media_header_required(self, renderer):
        template = make_image_header_template("t1")
        buttons = [TemplateButtonParam(sub_type="quick_reply", index=0, payload="STOP")]

        with pytest.raises(TemplateParamMismatch) as exc_info:
            renderer.validate(template, [], [text_param("Jane")], buttons)

        assert exc_info.value.details["field"] == "media_header"

    def test_example_handle_satisfies_media_header(self, renderer):
        template = make_image_header_template(
            "t1",
            header=TemplateHeader(format=HeaderFormat.IMAGE, example_media_handle="4::abc"),
        )
        buttons = [TemplateButtonParam(sub_type="quick_reply", index=0, payload="STOP")]

        renderer.validate(template, [], [text_param("Jane")], buttons)

    def test_media_header_type_must_match(self, renderer):
        template = make_image_header_template("t1")
        buttons = [TemplateButtonParam(sub_type="quick_reply", index=0, payload="STOP")]

        with pytest.raises(TemplateParamMismatch):
            renderer.validate(
                template,
                [],
                [text_param("Jane")],
                buttons,
                MediaHeader(type="video", id="vid-1"),
            )

    def test_media_header_on_text_template(self, renderer):
        with pytest.raises(TemplateParamMismatch):
            renderer.validate(
                make_template("t1"),
                [],
                [text_param("Jane"), text_param("#42")],
                [],
                MediaHeader(type="image", id="img-1"),
            )

    def test_button_count_and_sub_type(self, renderer):
        template = make_image_header_template("t1")
        header = MediaHeader(type="image", id="img-1")

        with pytest.raises(TemplateParamMismatch):
            renderer.validate(template, [], [text_param("Jane")], [], header)

        with pytest.raises(TemplateParamMismatch) as exc_info:
            renderer.validate(
                template,
                [],
                [text_param("Jane")],
                [TemplateButtonParam(sub_type="cta_url", index=0, url="https://x.test")],
                header,
            )
        assert "sub_type" in exc_info.value.message

    def test_unknown_button_index(self, renderer):
        template = make_image_header_template("t1")

        with pytest.raises(TemplateParamMismatch):
            renderer.validate(
                template,
                [],
                [text_param("Jane")],
                [TemplateButtonParam(sub_type="quick_reply", index=3, payload="X")],
                MediaHeader(type="image", id="img-1"),
            )

    def test_repeated_button_index(self, renderer):
        template = make_template(
            "t1",
            buttons=[
                TemplateButton(sub_type="quick_reply", index=0, text="Yes"),
                TemplateButton(sub_type="quick_reply", index=1, text="No"),
            ],
        )

        with pytest.raises(TemplateParamMismatch) as exc_info:
            renderer.validate(
                template,
                [],
                [text_param("Jane"), text_param("#42")],
                [
                    TemplateButtonParam(sub_type="quick_reply", index=0, payload="YES"),
                    TemplateButtonParam(sub_type="quick_reply", index=0, payload="NO"),
                ],
            )
        assert exc_info.value.details["indices"] == [0, 0]


class TestRender:
    def test_positional_body(self, renderer):
        rendered = renderer.render(
            make_template("t1"), [], [text_param("Jane"), text_param("#42")], []
        )

        assert rendered.to_wire() == {
            "name": "order_update",
            "language": {"code": "en"},
            "components": [
                {
                    "type": "body",
                    "parameters": [
                        {"type": "text", "text": "Jane"},
                        {"type": "text", "text": "#42"},
                    ],
                }
            ],
        }
        assert rendered.rendered_text == "Hi Jane, your order #42 has shipped."

    def test_named_parameters(self, renderer):
        template = make_template(
            "t1",
            body_text="Hi {{customer_name}}",
            body_parameter_names=["customer_name"],
        )

        rendered = renderer.render(template, [], [text_param("Jane")], [])

        assert rendered.components[0]["parameters"][0] == {
            "type": "text",
            "text": "Jane",
            "parameter_name": "customer_name",
        }
        assert rendered.rendered_text == "Hi Jane"

    def test_media_header_and_buttons(self, renderer):
        template = make_image_header_template("t1")

        rendered = renderer.render(
            template,
            [],
            [text_param("Jane")],
            [TemplateButtonParam(sub_type="quick_reply", index=0, payload="STOP")],
            MediaHeader(type="image", link="https://cdn.test/banner.jpg"),
        )

        header, body, button = rendered.components
        assert header == {
            "type": "header",
            "parameters": [
                {"type": "image", "image": {"link": "https://cdn.test/banner.jpg"}}
            ],
        }
        assert body["type"] == "body"
        assert button == {
            "type": "button",
            "sub_type": "quick_reply",
            "index": "0",
            "parameters": [{"type": "payload", "payload": "STOP"}],
        }

    def test_currency_parameter(self, renderer):
        template = make_template(
            "t1", body_text="Total {{1}}", body_parameter_names=["1"]
        )
        param = TemplateParameter(
            type="currency",
            currency={"fallback_value": "$10.99", "code": "USD", "amount_1000": 10990},
        )

        rendered = renderer.render(template, [], [param], [])

        assert rendered.components[0]["parameters"][0]["currency"]["amount_1000"] == 10990
        assert rendered.rendered_text == "Total $10.99"

    def test_envelope_json(self, renderer):
        rendered = renderer.render(
            make_template("t1"), [], [text_param("Jane"), text_param("#42")], []
        )

        envelope = json.loads(rendered.envelope_json())

        assert envelope["name"] == "order_update"
        assert envelope["rendered_text"] == rendered.rendered_text

    def test_no_body_text_renders_template_name(self, renderer):
        template = make_template("t1", body_text="", body_parameter_names=[])

        rendered = renderer.render(template, [], [], [])

        assert rendered.rendered_text == "order_update"
        assert "components" not in rendered.to_wire()


class TestParameterModels:
    def test_text_parameter_requires_text(self):
        with pytest.raises(ValueError):
            TemplateParameter(type="text")

    def test_media_header_requires_source(self):
        with pytest.raises(ValueError):
            MediaHeader(type="image")
