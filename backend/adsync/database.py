"""
Database engine and sessions.

PostgreSQL through asyncpg on the SQLAlchemy 2 async engine. Request handlers
get a session from get_db; background jobs and the concurrent tree loader open
their own through async_session, one per unit of work.
"""

import logging
import ssl
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import text
from adsync.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# libpq-style flags asyncpg does not accept as URL parameters
_SSL_QUERY_KEYS = ("sslmode", "ssl")


def ssl_requested(url: URL) -> bool:
    return any(url.query.get(key) == "require" for key in _SSL_QUERY_KEYS)


def engine_url(database_url: str) -> URL:
    """The configured URL minus SSL flags, which go to asyncpg as connect args."""
    return make_url(database_url).difference_update_query(_SSL_QUERY_KEYS)


def connect_args(database_url: str) -> dict:
    args = {"timeout": settings.db_connect_timeout}
    if ssl_requested(make_url(database_url)):
        # Managed Postgres proxies present certificates we cannot verify
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        args["ssl"] = ctx
    return args


engine = create_async_engine(
    engine_url(settings.database_url),
    echo=settings.db_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
    connect_args=connect_args(settings.database_url),
)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:
    """Request-scoped session: committed when the handler returns, rolled back if it raises."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    """
    Create any campaign-set tables that don't exist yet.
    Changes to existing tables go through Alembic migrations.
    """
    import adsync.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Database ready: {', '.join(sorted(Base.metadata.tables))}")


async def check_db_connection() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
