"""Scope context for tagging logs with the inbound webhook source."""

from contextvars import ContextVar
from typing import Optional

# Context variable for the source webhook id (the dedup/rule scope)
webhook_id_var: ContextVar[Optional[str]] = ContextVar("webhook_id", default=None)


def set_scope_context(webhook_id: str | None) -> None:
    """Set the current scope context.

    Args:
        webhook_id: Source webhook ID to set in context
    """
    webhook_id_var.set(webhook_id)


def get_scope_context() -> str | None:
    """Get the current scope context."""
    return webhook_id_var.get()


def clear_scope_context() -> None:
    """Clear the current scope context."""
    webhook_id_var.set(None)
