"""
Primary store connection lifecycle.

Owns the SQLAlchemy engine and session factory. ``connect()`` performs a
single bounded handshake and reports failure as ``False`` so callers can
choose the flat-file fallback; nothing here retries.

Readiness is the conjunction of a locally tracked flag and the state the
driver reports through engine/pool events. The two can diverge: the local
flag follows connect/disconnect calls only, while the driver state follows
what actually happened to pooled connections (a pool connect sets it, a
disconnect error clears it).
"""

from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional
import logging

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from traowl.core.config import Settings
from traowl.db.models import Base

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


class ConnectionManager:
    """Lifecycle of the primary store connection."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.is_connected = False
        self.engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        self._state = ConnectionState.DISCONNECTED
        # Driver side: only engine/pool events write this
        self._driver_connected = False
        # Set once a connection that was up has been lost
        self._lost = False

    # ------------------------------------------------------------------
    # Engine construction
    # ------------------------------------------------------------------
    def _create_engine(self, url: str) -> Engine:
        s = self.settings
        if url.startswith("sqlite"):
            engine = create_engine(
                url,
                connect_args={"check_same_thread": False, "timeout": s.database_connect_timeout},
                poolclass=StaticPool,
                echo=False,
            )

            @event.listens_for(engine, "connect")
            def set_sqlite_pragma(dbapi_conn, connection_record):
                cursor = dbapi_conn.cursor()
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=NORMAL")
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

            return engine

        return create_engine(
            url,
            poolclass=QueuePool,
            pool_size=s.database_pool_size,
            max_overflow=s.database_max_overflow,
            pool_recycle=s.database_pool_recycle,
            pool_pre_ping=s.database_pool_pre_ping,
            pool_timeout=s.database_pool_timeout,
            echo=False,
            connect_args={"connect_timeout": s.database_connect_timeout},
        )

    def _attach_listeners(self, engine: Engine) -> None:
        @event.listens_for(engine, "handle_error")
        def on_error(context):
            if context.is_disconnect:
                logger.error(f"Primary store connection error: {context.original_exception}")
                self.on_driver_disconnected()

        @event.listens_for(engine, "connect")
        def on_connect(dbapi_conn, connection_record):
            self.on_driver_connected()

    # ------------------------------------------------------------------
    # Driver events
    # ------------------------------------------------------------------
    def on_driver_disconnected(self) -> None:
        if self._driver_connected:
            logger.warning("Primary store disconnected")
        self._driver_connected = False
        self._lost = True

    def on_driver_connected(self) -> None:
        if self._lost:
            logger.info("Primary store reconnected")
        self._driver_connected = True
        self._lost = False

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------
    def connect(self, target: Optional[str] = None) -> bool:
        """
        Single connection handshake plus schema creation.
        Returns True on success, False on any failure (never raises).
        """
        if self.is_ready():
            return True
        if self.engine is not None:
            # Driver lost the connection: start over with a fresh engine
            self.disconnect()

        url = target or self.settings.database_url
        self._state = ConnectionState.CONNECTING
        engine = None
        try:
            engine = self._create_engine(url)
            self._attach_listeners(engine)
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            Base.metadata.create_all(bind=engine)
        except Exception as e:
            logger.error(f"Primary store connection failed: {e}")
            logger.warning("Falling back to JSON file storage")
            if engine is not None:
                try:
                    engine.dispose()
                except Exception:
                    pass
            self._state = ConnectionState.DISCONNECTED
            self.is_connected = False
            self._driver_connected = False
            return False

        self.engine = engine
        self._session_factory = sessionmaker(
            bind=engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )
        self.is_connected = True
        self._state = ConnectionState.CONNECTED
        logger.info(f"Primary store connected: {engine.url.render_as_string(hide_password=True)}")
        return True

    def disconnect(self) -> None:
        """Best-effort teardown; errors are logged, never raised."""
        if self.engine is None:
            self.is_connected = False
            self._state = ConnectionState.DISCONNECTED
            return
        self._state = ConnectionState.DISCONNECTING
        try:
            self.engine.dispose()
            logger.info("Primary store disconnected gracefully")
        except Exception as e:
            logger.error(f"Error disconnecting from primary store: {e}")
        finally:
            self.engine = None
            self._session_factory = None
            self.is_connected = False
            self._driver_connected = False
            self._lost = False
            self._state = ConnectionState.DISCONNECTED

    def is_ready(self) -> bool:
        return self.is_connected and self._driver_connected

    def get_connection_state(self) -> str:
        if self._state is ConnectionState.CONNECTED and not self._driver_connected:
            return ConnectionState.DISCONNECTED.value
        return self._state.value

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Transactional scope; rolls back on error, always closes."""
        if self._session_factory is None:
            raise RuntimeError("Primary store is not connected")
        db = self._session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
