from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from practicepulse.config import settings

_engine_kwargs: dict = dict(
    echo=settings.debug,
)
if "sqlite" not in settings.database_url:
    _engine_kwargs.update(pool_size=20, max_overflow=10, pool_pre_ping=True)

engine = create_async_engine(settings.database_url, **_engine_kwargs)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Yield the session factory report fetches open their own sessions from.

    Report requests fan out into concurrent fetches, and an ``AsyncSession``
    must not be shared between concurrently running tasks.
    """
    yield async_session
