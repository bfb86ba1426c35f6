"""Async database handle shared by the stores."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Sequence

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from job_autopilot.core.errors import PersistenceFailure
from job_autopilot.storage.tables import Base
from job_autopilot.utils.logging import get_logger

logger = get_logger(__name__)


class Database:
    """Owns the engine and hands out sessions that fail with PersistenceFailure."""
    
    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.logger = logger.bind(component="database")
        
        parsed = make_url(url)
        engine_kwargs: Dict[str, Any] = {"echo": echo}
        
        if parsed.get_backend_name() == "sqlite":
            engine_kwargs["connect_args"] = {"timeout": 30}
            if parsed.database in (None, "", ":memory:"):
                engine_kwargs["poolclass"] = StaticPool
            else:
                Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
        
        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        
        if parsed.get_backend_name() == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        
        self._sessionmaker = async_sessionmaker(self.engine, expire_on_commit=False)
    
    @property
    def dialect(self) -> str:
        return self.engine.dialect.name
    
    async def init_schema(self) -> None:
        """Create all tables that do not exist yet."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise PersistenceFailure("Schema creation failed", {"error": str(e)}) from e
        
        self.logger.info("Database schema ready", url=self._safe_url())
    
    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Open a session inside a transaction.
        
        Commits on normal exit, rolls back on error. Storage errors are
        raised as PersistenceFailure.
        """
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as e:
            self.logger.error("Database operation failed", error=str(e))
            raise PersistenceFailure("Storage operation failed", {"error": str(e)}) from e
    
    async def dispose(self) -> None:
        await self.engine.dispose()
    
    def _safe_url(self) -> str:
        return make_url(self.url).render_as_string(hide_password=True)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


async def insert_ignoring_conflicts(
    session: AsyncSession,
    table: Any,
    rows: List[Dict[str, Any]],
    conflict_columns: Sequence[str]
) -> int:
    """
    Insert rows, skipping any that collide on the given unique columns.
    
    Returns:
        Number of rows actually inserted
    """
    if not rows:
        return 0
    
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    elif dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        raise PersistenceFailure(f"Conflict-ignoring insert unsupported on {dialect}")
    
    stmt = insert(table).values(rows).on_conflict_do_nothing(index_elements=list(conflict_columns))
    result = await session.execute(stmt)
    return result.rowcount or 0
