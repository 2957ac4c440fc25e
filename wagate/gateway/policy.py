"""
Session-window policy.

WhatsApp only accepts free-form messages within 24 hours of the customer's
last inbound message. Outside that window, or for promotional content, the
send must use an approved template, and templates cost credit.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from wagate.core.config.settings import settings
from wagate.core.errors import InsufficientCredit, TemplateUnavailable
from wagate.core.logging.logger import get_logger
from wagate.domain.interfaces import IGatewayRepository
from wagate.domain.models import Customer, Template, Tenant, utc_now

SESSION_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class PolicyDecision:
    use_template: bool
    template: Template | None
    reason: str


class SessionWindowPolicy:
    """Decides free-form vs template per send. Reads only, never writes."""

    def __init__(
        self,
        repository: IGatewayRepository,
        credit_cost: Decimal = settings.template_credit_cost,
    ):
        self.repository = repository
        self.credit_cost = credit_cost
        self.logger = get_logger(__name__)

    @staticmethod
    def window_open(last_inbound_at: datetime | None, now: datetime | None = None) -> bool:
        if last_inbound_at is None:
            return False
        now = now or utc_now()
        return now - last_inbound_at <= SESSION_WINDOW

    def template_reason(
        self,
        message_type: str,
        is_promotional: bool,
        last_inbound_at: datetime | None,
        now: datetime | None = None,
    ) -> str | None:
        """Why a template is required, or None when free-form is allowed."""
        if message_type == "template":
            return "template_requested"
        if is_promotional:
            return "promotional"
        if last_inbound_at is None:
            return "no_inbound_message"
        if not self.window_open(last_inbound_at, now):
            return "session_window_expired"
        return None

    async def decide(
        self,
        tenant: Tenant,
        customer: Customer,
        message_type: str,
        is_promotional: bool = False,
        category: str = "utility",
        template_name: str | None = None,
        now: datetime | None = None,
    ) -> PolicyDecision:
        """
        Resolve the policy for one send.

        Raises:
            TemplateUnavailable: A template is required but none is active
            InsufficientCredit: A template is required and the balance is short
        """
        reason = self.template_reason(
            message_type, is_promotional, customer.last_inbound_at, now
        )
        if reason is None:
            return PolicyDecision(use_template=False, template=None, reason="session_open")

        if template_name:
            template = await self.repository.get_template_by_name(tenant.id, template_name)
            if template is None:
                raise TemplateUnavailable(
                    f"Template '{template_name}' not found or inactive",
                    details={"template_name": template_name, "reason": reason},
                )
        else:
            template = await self.repository.get_active_template_by_category(
                tenant.id, category
            )
            if template is None:
                raise TemplateUnavailable(
                    f"No active template for category '{category}'",
                    details={"category": category, "reason": reason},
                )

        if tenant.credit_balance < self.credit_cost:
            raise InsufficientCredit(
                "Insufficient credit to send a template message",
                details={
                    "balance": str(tenant.credit_balance),
                    "required": str(self.credit_cost),
                },
            )

        self.logger.debug(f"Template '{template.name}' required ({reason})")
        return PolicyDecision(use_template=True, template=template, reason=reason)
