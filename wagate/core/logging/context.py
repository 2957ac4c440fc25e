"""
Request context management using contextvars for automatic propagation.

The context is set once per request (outbound send or inbound webhook item) and
is then available to every logger created with get_logger().
"""

from contextvars import ContextVar

_tenant_context: ContextVar[str | None] = ContextVar("tenant_id", default=None)
_user_context: ContextVar[str | None] = ContextVar(
    "user_id", default=None
)  # Customer phone


def set_request_context(
    tenant_id: str | None = None,
    user_id: str | None = None,
) -> None:
    """
    Set the request context for the current async context.

    Args:
        tenant_id: Tenant (agent) identifier
        user_id: Customer identifier, usually the E.164 phone number
    """
    if tenant_id is not None:
        _tenant_context.set(tenant_id)
    if user_id is not None:
        _user_context.set(user_id)


def get_current_tenant_context() -> str | None:
    """Get the current tenant ID from context variables."""
    return _tenant_context.get()


def get_current_user_context() -> str | None:
    """Get the current user ID from context variables."""
    return _user_context.get()


def clear_request_context() -> None:
    """
    Clear the request context.

    Webhook processing handles several tenants in one request, so the
    processor clears context between items.
    """
    _tenant_context.set(None)
    _user_context.set(None)
