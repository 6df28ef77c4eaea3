from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from backlog_api.models import Base

logger = logging.getLogger(__name__)


def _ensure_sqlite_dir(database_url: str) -> None:
  url = make_url(database_url)
  if not url.drivername.startswith("sqlite"):
    return
  db_path = url.database or ""
  if not db_path or db_path == ":memory:":
    return
  Path(db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)


class Database:
  """Owns the engine, the session factory and the single store mutation lock.

  Both stores share ``lock`` because the unit of persistence is the whole collection:
  every read-modify-write sequence against either table runs while holding it.
  """

  def __init__(self, database_url: str) -> None:
    self.database_url = database_url
    _ensure_sqlite_dir(database_url)
    self.engine: AsyncEngine = create_async_engine(database_url, future=True)
    self.sessionmaker = async_sessionmaker(self.engine, expire_on_commit=False)
    self.lock = asyncio.Lock()
    self._schema_lock = asyncio.Lock()
    self._schema_ready = False

  async def ensure_schema(self) -> None:
    # A missing table is an empty collection, so create it on first use.
    if self._schema_ready:
      return
    async with self._schema_lock:
      if self._schema_ready:
        return
      async with self.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
      self._schema_ready = True
    logger.debug("backlog schema ready on %s", self.engine.url.render_as_string(hide_password=True))

  @asynccontextmanager
  async def session(self) -> AsyncIterator[AsyncSession]:
    await self.ensure_schema()
    async with self.sessionmaker() as session:
      yield session

  async def dispose(self) -> None:
    await self.engine.dispose()
