"""Request-scoped cold-storage context.

  - _store_ctx   ContextVar holding the cold storage id for the current request
  - set / get / clear helpers for the ContextVar

Set by the ``get_cold_storage_id`` dependency; read by the cache layer so
cached reads and their invalidation never cross stores.
"""

from contextvars import ContextVar

_store_ctx: ContextVar[str | None] = ContextVar("_store_ctx", default=None)


def set_current_store(cold_storage_id: str) -> None:
    _store_ctx.set(cold_storage_id)


def get_current_store() -> str | None:
    return _store_ctx.get()


def clear_store_context() -> None:
    _store_ctx.set(None)
