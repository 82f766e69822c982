from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from storefront.config import settings


def _engine_options(database_url: str) -> dict:
    # SQLite (tests, local runs) has no connection pool to size.
    if make_url(database_url).get_backend_name() == "sqlite":
        return {}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


engine = create_async_engine(
    settings.database_url,
    echo=False,
    **_engine_options(settings.database_url),
)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass
