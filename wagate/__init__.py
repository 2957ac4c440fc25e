"""
wagate - multi-tenant WhatsApp messaging gateway.

Run with `wagate dev` or build the app with `wagate.api.create_app()`.
"""

__version__ = "0.1.0"
