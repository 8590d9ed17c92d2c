"""Shared transaction handling for the SQL-backed repositories."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.errors import RepositoryError


class SqlRepository:
    """Base for repositories that own one table behind a session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        """Open a session inside a transaction that commits on clean exit.

        Store failures surface as RepositoryError; domain errors raised by
        the caller pass through untouched after the rollback.
        """
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    yield db
        except SQLAlchemyError as e:
            raise RepositoryError(f"{type(self).__name__} store failure: {e}") from e
