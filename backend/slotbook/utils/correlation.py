from __future__ import annotations

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_correlation_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def new_correlation_id() -> str:
    return uuid.uuid4().hex


def get_correlation_id() -> Optional[str]:
    return _correlation_ctx.get()


@contextmanager
def correlation_scope(correlation_id: str | None = None) -> Iterator[str]:
    """Tag everything logged inside the block with one id. Nested scopes reuse the outer id."""
    current = _correlation_ctx.get()
    value = correlation_id or current or new_correlation_id()
    token = _correlation_ctx.set(value)
    try:
        yield value
    finally:
        _correlation_ctx.reset(token)
