from typing import AsyncGenerator

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base

from app.core.config import settings


def get_database_url():
    db_url = settings.DATABASE_URL
    if "postgresql" in db_url and "ssl" not in db_url and settings.ENVIRONMENT != "development":
        return f"{db_url}?ssl=require"
    return db_url


DATABASE_URL = get_database_url()
engine = create_async_engine(DATABASE_URL, echo=settings.DATABASE_ECHO)
async_session_maker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
Base = declarative_base()


def get_async_session_maker_instance():
    """Get the async session maker instance."""
    return async_session_maker


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session


async def table_exists(session: AsyncSession, table_name: str) -> bool:
    """Return True if the table is present in the connected database."""
    conn = await session.connection()
    return await conn.run_sync(lambda sync_conn: inspect(sync_conn).has_table(table_name))


def dialect_name(session: AsyncSession) -> str:
    return session.get_bind().dialect.name
