"""Context variables for drain-scoped logging data.

Each drain pass gets its own id so the lines of one pass can be grouped,
and the item currently being transferred is bound for the duration of the
attempt. contextvars keep this correct across asyncio tasks.
"""

from contextvars import ContextVar
from typing import Any
from uuid import uuid4

_drain_id: ContextVar[str] = ContextVar("drain_id", default="")

_bound_context: ContextVar[dict[str, Any] | None] = ContextVar("bound_context", default=None)


def get_drain_id() -> str:
    """Return the id of the drain pass running in this context, or ""."""
    return _drain_id.get()


def start_drain_context() -> str:
    """Generate a drain id and make it current.

    Returns:
        The generated drain id.
    """
    new_id = uuid4().hex[:12]
    _drain_id.set(new_id)
    return new_id


def get_bound_context() -> dict[str, Any]:
    """Return a copy of the fields bound to this context."""
    context = _bound_context.get()
    if context is None:
        return {}
    return context.copy()


def bind_context(**fields: Any) -> None:
    """Bind fields (item_id, group_id, ...) to every following log line.

    Args:
        **fields: Key-value pairs to include in log records.
    """
    current = _bound_context.get()
    current = {} if current is None else current.copy()
    current.update(fields)
    _bound_context.set(current)


def unbind_context(*keys: str) -> None:
    """Drop previously bound fields."""
    current = _bound_context.get()
    if not current:
        return
    _bound_context.set({key: value for key, value in current.items() if key not in keys})


def clear_context() -> None:
    """Clear the drain id and all bound fields."""
    _drain_id.set("")
    _bound_context.set(None)
