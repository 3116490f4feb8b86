from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from src.config.settings import get_settings


settings = get_settings()


def create_app_engine(database_url: str | None = None) -> AsyncEngine:
    """Create the async engine for Postgres (direct or behind PgBouncer) or SQLite.

    - SQLite (local runs and tests): one shared connection.
    - PgBouncer / managed poolers: small pool, no server-side prepared statements.
    - Direct Postgres: standard pool with pre-ping.
    """
    database_url = database_url or settings.DATABASE_URL

    if database_url.startswith("sqlite"):
        return create_async_engine(
            database_url,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    using_pooler = ".pooler." in database_url or ":6432/" in database_url

    if using_pooler:
        # Each pooled connection holds a server slot
        pool_size = 3
        max_overflow = 2
        pool_recycle = 1800
        connect_args = {"connect_timeout": 10, "prepare_threshold": None}
    else:
        pool_size = 10
        max_overflow = 10
        pool_recycle = 3600
        connect_args = {"connect_timeout": 10}

    return create_async_engine(
        database_url,
        echo=False,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_recycle=pool_recycle,
        pool_pre_ping=True,
        pool_use_lifo=True,
        connect_args=connect_args,
    )


engine: AsyncEngine = create_app_engine()
