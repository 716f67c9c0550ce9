"""Per-request logging context backed by contextvars.

The middleware binds a request id (and a trace id when the caller sends one);
the auth dependency binds the user id. The logging processor reads them back
so every log line emitted while serving a request carries them.
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Bind a request ID, generating one when the caller sent none.

    Returns:
        The request ID that was bound.
    """
    rid = request_id or str(uuid4())
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    """Get the current user ID."""
    return user_id_var.get()


def set_user_id(user_id: str | UUID | None) -> None:
    """Bind the authenticated user ID."""
    user_id_var.set(str(user_id) if user_id is not None else None)


def set_trace_id(trace_id: str | None) -> None:
    """Bind the distributed trace ID."""
    trace_id_var.set(trace_id)


def get_context() -> dict[str, Any]:
    """Return the bound context variables, skipping empty ones."""
    context: dict[str, Any] = {}

    request_id = request_id_var.get()
    if request_id:
        context["request_id"] = request_id

    user_id = user_id_var.get()
    if user_id:
        context["user_id"] = user_id

    trace_id = trace_id_var.get()
    if trace_id:
        context["trace_id"] = trace_id

    return context


def clear_context() -> None:
    """Reset all context variables at the end of a request."""
    request_id_var.set("")
    user_id_var.set(None)
    trace_id_var.set(None)
