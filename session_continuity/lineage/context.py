"""Task-scoped parent propagation for event lineage.

The current parent event id lives in a ``ContextVar``. asyncio copies the
context into every task it creates, so:

- nested ``with_parent`` calls deepen the lineage,
- tasks spawned inside a scope inherit its parent,
- sibling tasks never see each other's scope.

``EventStore.append`` reads ``current_parent()`` when the caller passes no
explicit parent; an explicit ``parent_id`` always wins.
"""

from __future__ import annotations

import inspect
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Awaitable, Callable, ContextManager, Iterator, Optional, TypeVar, Union

T = TypeVar("T")

_current_parent: ContextVar[Optional[str]] = ContextVar("session_continuity_parent_event", default=None)


def current_parent() -> Optional[str]:
    """Return the parent event id propagated to the running task, if any."""
    return _current_parent.get()


@contextmanager
def parent_scope(parent_id: Optional[str]) -> Iterator[Optional[str]]:
    """Make ``parent_id`` the propagated parent for the enclosed block."""
    token = _current_parent.set(parent_id)
    try:
        yield parent_id
    finally:
        _current_parent.reset(token)


def detached() -> ContextManager[Optional[str]]:
    """Clear the propagated parent so the enclosed block emits root events."""
    return parent_scope(None)


async def with_parent(
    parent_id: str,
    fn: Callable[..., Union[Awaitable[T], T]],
    *args: Any,
    **kwargs: Any,
) -> T:
    """
    Run ``fn`` with ``parent_id`` as the propagated parent.

    Args:
        parent_id: Event id that events emitted inside ``fn`` attach to.
        fn: Sync or async callable.
        args: Positional arguments for ``fn``.
        kwargs: Keyword arguments for ``fn``.

    Returns:
        Whatever ``fn`` returns (awaited if it is awaitable).
    """
    with parent_scope(parent_id):
        result = fn(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result
