"""Durable local store: a SQLite database holding two collections.

``offline_orders``  keyed by order id (indexes on email_sent, synced_to_server, created_at)
``cached_data``     keyed by cache key (reference-data envelopes, last sync timestamp)

Every operation is atomic at the single-record level. Storage failures of
any kind surface as ``StorageUnavailable``.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

from sqlalchemy import delete as sa_delete
from sqlalchemy import func, inspect, select, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from orderdesk.core.exceptions import StorageUnavailable
from orderdesk.models import Base, CachedDataEntry, OfflineOrderRecord

logger = logging.getLogger(__name__)

OFFLINE_ORDERS = "offline_orders"
CACHED_DATA = "cached_data"

COLLECTIONS: dict[str, type[Base]] = {
    OFFLINE_ORDERS: OfflineOrderRecord,
    CACHED_DATA: CachedDataEntry,
}


def _model_for(collection: str) -> type[Base]:
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise KeyError(f"Unknown local collection: {collection}") from None


def _primary_key(model: type[Base]) -> str:
    return inspect(model).primary_key[0].name


def _column_names(model: type[Base]) -> list[str]:
    return [attr.key for attr in inspect(model).column_attrs]


def _to_dict(obj: Base) -> dict[str, Any]:
    return {name: getattr(obj, name) for name in _column_names(type(obj))}


def _ensure_sqlite_dir(url: str) -> None:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return
    database = parsed.database
    if database and database != ":memory:" and not database.startswith("file:"):
        Path(database).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)


class LocalStore:
    def __init__(self, url: str):
        self.url = url
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker[AsyncSession] | None = None
        self._open_lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self.session_factory is not None

    async def open(self) -> "LocalStore":
        """Create the engine and tables once; concurrent callers share the result."""
        if self.session_factory is not None:
            return self

        async with self._open_lock:
            if self.session_factory is not None:
                return self
            engine = None
            try:
                _ensure_sqlite_dir(self.url)
                engine = create_async_engine(self.url)
                async with engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
            except (SQLAlchemyError, OSError) as exc:
                logger.error("Cannot open local store %s: %s", self.url, exc)
                if engine is not None:
                    await engine.dispose()
                raise StorageUnavailable(
                    "Local store could not be opened.", {"reason": str(exc)}
                ) from exc

            self.engine = engine
            self.session_factory = async_sessionmaker(engine, expire_on_commit=False)
            logger.info("Local store opened at %s", self.url)
        return self

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
        self.engine = None
        self.session_factory = None

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        await self.open()
        try:
            async with self.session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Local store operation failed: %s", exc)
            raise StorageUnavailable(
                "Local store is unavailable.", {"reason": str(exc)}
            ) from exc

    async def put(self, collection: str, key: str, record: dict[str, Any]) -> None:
        """Insert or overwrite the record stored under ``key``."""
        model = _model_for(collection)
        columns = set(_column_names(model))
        values = {k: v for k, v in record.items() if k in columns}
        values[_primary_key(model)] = key

        async with self._session() as session:
            await session.merge(model(**values))
            await session.commit()

    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        model = _model_for(collection)
        async with self._session() as session:
            obj = await session.get(model, key)
            return _to_dict(obj) if obj is not None else None

    async def get_all(
        self, collection: str, where: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """All records, optionally filtered by equality on indexed columns.

        Orders come back in insertion (``created_at``) order, cache entries by key.
        """
        model = _model_for(collection)
        query = select(model)
        if where:
            query = query.filter_by(**where)
        order_column = getattr(model, "created_at", None)
        if order_column is None:
            order_column = getattr(model, _primary_key(model))
        query = query.order_by(order_column)

        async with self._session() as session:
            result = await session.execute(query)
            return [_to_dict(obj) for obj in result.scalars().all()]

    async def count(self, collection: str, where: dict[str, Any] | None = None) -> int:
        model = _model_for(collection)
        query = select(func.count()).select_from(model)
        if where:
            query = query.filter_by(**where)
        async with self._session() as session:
            result = await session.execute(query)
            return int(result.scalar_one())

    async def update(
        self, collection: str, key: str, changes: dict[str, Any]
    ) -> dict[str, Any] | None:
        """Read-modify-write of a single record. Returns None if it does not exist."""
        model = _model_for(collection)
        columns = set(_column_names(model))
        async with self._session() as session:
            obj = await session.get(model, key)
            if obj is None:
                return None
            for field, value in changes.items():
                if field in columns:
                    setattr(obj, field, value)
            await session.commit()
            return _to_dict(obj)

    async def delete(self, collection: str, key: str) -> bool:
        model = _model_for(collection)
        async with self._session() as session:
            obj = await session.get(model, key)
            if obj is None:
                return False
            await session.delete(obj)
            await session.commit()
            return True

    async def delete_where(self, collection: str, where: dict[str, Any]) -> int:
        model = _model_for(collection)
        async with self._session() as session:
            result = await session.execute(sa_delete(model).filter_by(**where))
            await session.commit()
            return result.rowcount or 0

    async def clear(self, collection: str) -> int:
        model = _model_for(collection)
        async with self._session() as session:
            result = await session.execute(sa_delete(model))
            await session.commit()
            return result.rowcount or 0

    async def ping(self) -> None:
        async with self._session() as session:
            await session.execute(text("SELECT 1"))
