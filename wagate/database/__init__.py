"""
Relational persistence for the gateway (SQLModel over async SQLAlchemy).
"""

from .models import GATEWAY_TABLES
from .repository import SQLGatewayRepository
from .session_manager import DatabaseSessionManager

__all__ = ["DatabaseSessionManager", "GATEWAY_TABLES", "SQLGatewayRepository"]
