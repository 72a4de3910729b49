from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from quizhub.core.config import settings
from quizhub.core.errors import StorageUnavailable

logger = logging.getLogger("quizhub.db")

# Process-wide connection state. Nothing outside this module touches the
# engine directly; callers get sessions through get_db()/SessionLocal.
engine: Engine | None = None
SessionLocal = sessionmaker(autoflush=False)

_lock = threading.Lock()
_supervisor: ConnectionSupervisor | None = None


def _build_engine(url: str) -> Engine:
    kwargs: dict[str, object] = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_size"] = int(settings.db_pool_size)
        kwargs["connect_args"] = {"connect_timeout": int(settings.db_connect_timeout_seconds)}
    return create_engine(url, **kwargs)


def init_db(url: str | None = None) -> Engine:
    global engine
    with _lock:
        if engine is None:
            engine = _build_engine(url or settings.database_url)
            SessionLocal.configure(bind=engine)
            logger.info("database engine initialised")
        return engine


def shutdown_db() -> None:
    global engine
    with _lock:
        if engine is not None:
            engine.dispose()
            engine = None
            logger.info("database engine disposed")


def reset_engine() -> Engine:
    shutdown_db()
    return init_db()


def ping() -> bool:
    eng = engine or init_db()
    try:
        with eng.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False


def get_db() -> Iterator[Session]:
    if engine is None:
        init_db()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class ConnectionSupervisor:
    """Background watchdog that re-initialises the engine after a disconnect.

    Pings the database every ``interval_seconds``. When a ping fails the engine
    is disposed and rebuilt, retrying with exponential backoff capped at
    ``backoff_max_seconds`` until a ping succeeds or the supervisor is stopped.
    """

    def __init__(self, *, interval_seconds: float, backoff_initial_seconds: float, backoff_max_seconds: float):
        self.interval_seconds = max(0.1, float(interval_seconds))
        self.backoff_initial_seconds = max(0.1, float(backoff_initial_seconds))
        self.backoff_max_seconds = max(self.backoff_initial_seconds, float(backoff_max_seconds))
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="quizhub-db-supervisor", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            if ping():
                continue
            logger.warning("database unreachable, reconnecting")
            self.reconnect()

    def reconnect(self) -> bool:
        delay = self.backoff_initial_seconds
        attempt = 0
        while not self._stop.is_set():
            attempt += 1
            try:
                reset_engine()
                if ping():
                    logger.info("database reconnected after %d attempt(s)", attempt)
                    return True
            except Exception:
                logger.exception("database re-initialisation failed")
            logger.warning("database still unreachable, retrying in %.1fs", delay)
            if self._stop.wait(delay):
                break
            delay = min(delay * 2, self.backoff_max_seconds)
        return False


def start_supervisor() -> ConnectionSupervisor:
    global _supervisor
    if _supervisor is None:
        _supervisor = ConnectionSupervisor(
            interval_seconds=settings.db_supervisor_interval_seconds,
            backoff_initial_seconds=settings.db_reconnect_backoff_initial_seconds,
            backoff_max_seconds=settings.db_reconnect_backoff_max_seconds,
        )
    _supervisor.start()
    return _supervisor


def stop_supervisor() -> None:
    global _supervisor
    if _supervisor is not None:
        _supervisor.stop()
        _supervisor = None


@contextmanager
def storage_guard(db: Session, action: str) -> Iterator[None]:
    """Turn driver/ORM failures into StorageUnavailable after rolling back."""
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("storage failure while %s: %s", action, e.__class__.__name__)
        raise StorageUnavailable(f"storage failure while {action}") from e
