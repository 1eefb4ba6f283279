from contextlib import contextmanager
import logging

from sqlalchemy import create_engine, event
from sqlalchemy.orm import scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from models.base_model import Base

logger = logging.getLogger(__name__)


class DBStorage:
    __engine = None
    __session = None

    def __init__(self, database_url: str, echo: bool = False):
        """Initialize the engine for the given database URL"""
        kwargs = {"echo": echo}
        if database_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
            if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
                # One shared connection, otherwise every checkout sees an empty database
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_pre_ping"] = True
        self.__engine = create_engine(database_url, **kwargs)

        if self.__engine.url.get_backend_name() == "sqlite":
            @event.listens_for(self.__engine, "connect")
            def _set_sqlite_pragma(dbapi_connection, connection_record):
                # SQLAlchemy emits BEGIN itself (see _begin_immediate)
                dbapi_connection.isolation_level = None
                # Enable SQLite foreign keys (needed for ON DELETE CASCADE)
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

            @event.listens_for(self.__engine, "begin")
            def _begin_immediate(conn):
                # Take the write lock up front; concurrent writers queue on the
                # busy timeout instead of failing on a lock upgrade
                conn.exec_driver_sql("BEGIN IMMEDIATE")

    def reload(self):
        """Create tables and start session"""
        Base.metadata.create_all(self.__engine)
        session_factory = sessionmaker(bind=self.__engine, expire_on_commit=False)
        self.__session = scoped_session(session_factory)
        logger.debug("storage ready on %s", self.__engine.url.render_as_string(hide_password=True))

    def get_session(self):
        """Session bound to the current thread"""
        return self.__session()

    @contextmanager
    def transaction(self):
        """
        Unit of work: commit when the block finishes, roll back and re-raise
        when it fails.
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise

    def count(self, cls):
        """Count rows of one model"""
        return self.get_session().query(cls).count()

    def close(self):
        """Remove session (for API teardown)"""
        if self.__session is not None:
            self.__session.remove()

    def drop_all(self):
        """Drop every table (tests)"""
        self.close()
        Base.metadata.drop_all(self.__engine)

    def dispose(self):
        self.close()
        self.__engine.dispose()
