"""
Session management for the sync and async database engines.
"""

from sqlalchemy import Engine, event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel, create_engine


def configure_sqlite(engine: Engine):
    """
    SQLite needs two adjustments to match what Postgres gives us for free:

    - foreign keys are ignored unless switched on for every connection. Group
      deletion relies on them to refuse removing a group that still holds
      serials or certificates.
    - the driver defers BEGIN until the first write, and row locks
      (SELECT ... FOR UPDATE) do not exist. Starting every transaction with
      BEGIN IMMEDIATE serializes them instead, so existence checks and the
      writes they gate see the same state.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class SyncSessionManager:
    """
    A manager for synchronous sessions. Expected usage of this class to interact:

    manager = SyncSessionManager(conn_url)

    with manager.session() as conn:
        group = conn.get(Group, "org-acme")
    """

    connection_url: str
    engine: Engine
    session: sessionmaker

    def __init__(self, connection_url: str, echo: bool = False):
        self.connection_url = connection_url
        self.engine = create_engine(self.connection_url, echo=echo)
        configure_sqlite(self.engine)
        self.session = sessionmaker(self.engine)

    def create_all(self):
        """
        Run the `SQLModel.metadata.create_all` migration tool. Required
        to set up the table schema.
        """
        from ovgs.database.meta import ALL_TABLES  # noqa: F401

        with self.engine.begin() as conn:
            SQLModel.metadata.create_all(conn)

    def drop_all(self):
        """
        Run the `SQLModel.metadata.drop_all` deletion method. WARNING: this
        will delete all data in your database; you probably don't want to do this
        unless you are writing a test.
        """
        with self.engine.begin() as conn:
            SQLModel.metadata.drop_all(conn)


class AsyncSessionManager:
    """
    A manager for asynchronous sessions. Expected usage of this class to interact:

    manager = AsyncSessionManager(conn_url)

    async with manager.session() as conn:
        async with conn.begin():
            group_id = await groups_service.create(...)
    """

    connection_url: str
    engine: AsyncEngine
    session: async_sessionmaker

    def __init__(self, connection_url: str, echo: bool = False):
        self.connection_url = connection_url
        self.engine = create_async_engine(self.connection_url, echo=echo)
        configure_sqlite(self.engine.sync_engine)
        self.session = async_sessionmaker(self.engine, expire_on_commit=False)

    async def create_all(self):
        """
        Run the `SQLModel.metadata.create_all` migration tool. Required
        to set up the table schema.
        """
        from ovgs.database.meta import ALL_TABLES  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
