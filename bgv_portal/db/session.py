from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from bgv_portal.core.config import settings


def enable_sqlite_savepoints(async_engine: AsyncEngine) -> AsyncEngine:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINT works on sqlite."""

    @event.listens_for(async_engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    return async_engine


engine = create_async_engine(settings.database_url, echo=False, pool_pre_ping=True)
if settings.database_url.startswith("sqlite"):
    enable_sqlite_savepoints(engine)
SessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


async def get_session() -> AsyncSession:
    async with SessionLocal() as session:
        yield session
