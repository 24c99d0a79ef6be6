# shopagenda/db/session.py

from typing import Any, AsyncIterator, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from shopagenda.core.config import settings


class Base(DeclarativeBase):
    pass


def engine_options(url: str) -> Dict[str, Any]:
    """Pool settings per backend.

    In-memory SQLite has one database per connection, so every session must
    share a single connection.
    """
    if url.startswith("sqlite"):
        options: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url:
            options["poolclass"] = StaticPool
        return options
    return {"pool_pre_ping": True}


def make_engine(url: Optional[str] = None, **overrides: Any) -> AsyncEngine:
    url = url or settings.async_db_uri
    return create_async_engine(url, **{**engine_options(url), **overrides})


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    # agenda rows stay readable after commit; notifications run post-commit
    return async_sessionmaker(bind, expire_on_commit=False, class_=AsyncSession)


engine = make_engine()
AsyncSessionLocal = make_session_factory(engine)


async def get_session() -> AsyncIterator[AsyncSession]:
    async with AsyncSessionLocal() as session:
        yield session
