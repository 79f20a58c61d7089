"""Procurement domain API package."""

from procurement.api.errors import register_order_exception_handlers
from procurement.api.routes import confirmation_router, order_router

__all__ = ["order_router", "confirmation_router", "register_order_exception_handlers"]
