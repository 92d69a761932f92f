"""
Delivery API — Storage factory

The backend is picked once from settings.STORAGE_BACKEND and shared by all
requests; tests swap it through app.dependency_overrides[get_storage].
"""
from delivery_api.core.config import Settings, get_settings
from delivery_api.storage.base import DriverSettlement, OrderChanges, OrderFilter, Storage

_storage: Storage | None = None


def build_storage(settings: Settings) -> Storage:
    if settings.STORAGE_BACKEND == "memory":
        from delivery_api.storage.memory import MemoryStorage
        return MemoryStorage()

    from delivery_api.db.database import async_session_factory
    from delivery_api.storage.sql import SqlStorage
    return SqlStorage(async_session_factory)


def get_storage() -> Storage:
    global _storage
    if _storage is None:
        _storage = build_storage(get_settings())
    return _storage


__all__ = ["DriverSettlement", "OrderChanges", "OrderFilter", "Storage", "build_storage", "get_storage"]
