"""
Tests for the session-window policy.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from wagate.core.errors import InsufficientCredit, TemplateUnavailable
from wagate.domain.models import utc_now
from wagate.gateway.policy import SessionWindowPolicy

from ..factories import make_template


@pytest.fixture
def policy(repository) -> SessionWindowPolicy:
    return SessionWindowPolicy(repository, credit_cost=Decimal("1"))


class TestSessionWindow:
    def test_window_open_one_hour_after_inbound(self):
        now = utc_now()
        assert SessionWindowPolicy.window_open(now - timedelta(hours=1), now) is True

    def test_window_closed_after_25_hours(self):
        now = utc_now()
        assert SessionWindowPolicy.window_open(now - timedelta(hours=25), now) is False

    def test_window_open_at_exactly_24_hours(self):
        now = utc_now()
        assert SessionWindowPolicy.window_open(now - timedelta(hours=24), now) is True

    def test_window_closed_without_inbound(self):
        assert SessionWindowPolicy.window_open(None) is False

    @pytest.mark.parametrize(
        "message_type, promotional, hours_ago, expected",
        [
            ("text", False, 1, None),
            ("text", False, 25, "session_window_expired"),
            ("text", False, None, "no_inbound_message"),
            ("image", True, 1, "promotional"),
            ("template", False, 1, "template_requested"),
        ],
    )
    def test_template_reason(self, policy, message_type, promotional, hours_ago, expected):
        now = utc_now()
        last_inbound = now - timedelta(hours=hours_ago) if hours_ago is not None else None

        assert policy.template_reason(message_type, promotional, last_inbound, now) == expected


class TestDecide:
    async def test_free_form_inside_window(self, policy, tenant, customer):
        decision = await policy.decide(tenant, customer, "text")

        assert decision.use_template is False
        assert decision.template is None

    async def test_expired_window_uses_category_template(
        self, policy, repository, tenant, customer
    ):
        await repository.save_template(make_template(tenant.id))
        customer.last_inbound_at = utc_now() - timedelta(hours=25)

        decision = await policy.decide(tenant, customer, "text")

        assert decision.use_template is True
        assert decision.template.name == "order_update"
        assert decision.reason == "session_window_expired"

    async def test_template_by_name(self, policy, repository, tenant, customer):
        await repository.save_template(make_template(tenant.id))
        await repository.save_template(
            make_template(tenant.id, id="tpl-2", name="welcome_back")
        )

        decision = await policy.decide(
            tenant, customer, "template", template_name="welcome_back"
        )

        assert decision.template.name == "welcome_back"

    async def test_category_lookup_picks_first_by_name(
        self, policy, repository, tenant, customer
    ):
        await repository.save_template(make_template(tenant.id, id="b", name="zeta"))
        await repository.save_template(make_template(tenant.id, id="a", name="alpha"))

        decision = await policy.decide(tenant, customer, "template")

        assert decision.template.name == "alpha"

    async def test_never_messaged_without_template_is_unavailable(
        self, policy, tenant, customer
    ):
        customer.last_inbound_at = None

        with pytest.raises(TemplateUnavailable) as exc_info:
            await policy.decide(tenant, customer, "text")

        assert exc_info.value.details["reason"] == "no_inbound_message"

    async def test_unknown_template_name(self, policy, repository, tenant, customer):
        await repository.save_template(make_template(tenant.id))

        with pytest.raises(TemplateUnavailable):
            await policy.decide(tenant, customer, "template", template_name="missing")

    async def test_inactive_template_is_not_used(self, policy, repository, tenant, customer):
        await repository.save_template(make_template(tenant.id, active=False))

        with pytest.raises(TemplateUnavailable):
            await policy.decide(tenant, customer, "template")

    async def test_zero_credit_fails(self, policy, repository, tenant, customer):
        await repository.save_template(make_template(tenant.id))
        tenant.credit_balance = Decimal("0")

        with pytest.raises(InsufficientCredit) as exc_info:
            await policy.decide(tenant, customer, "template")

        assert exc_info.value.error_code == "INSUFFICIENT_CREDIT"
        assert exc_info.value.details == {"balance": "0", "required": "1"}

    async def test_free_form_ignores_credit(self, policy, tenant, customer):
        tenant.credit_balance = Decimal("0")

        decision = await policy.decide(tenant, customer, "text")

        assert decision.use_template is False
