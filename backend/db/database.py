import logging
import time
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase

from config import MYSQL_DRIVER, SQLITE_DRIVER, Settings, settings
from services.deadline_context import check_deadline


logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def build_database_url(cfg: Settings | None = None) -> str:
    """Return the SQLAlchemy URL for the configured driver.

    The networked driver takes an access string of the form
    ``user:password@host:port/database``.
    """
    cfg = cfg or settings
    if cfg.DB_DRIVER == SQLITE_DRIVER:
        return f"sqlite:///{cfg.sqlite_path}"
    if cfg.DB_DRIVER == MYSQL_DRIVER:
        access = (cfg.MYSQL_ACCESS or "").strip()
        # Accept the older ``tcp(host:port)`` spelling as well.
        if "@tcp(" in access:
            access = access.replace("@tcp(", "@").replace(")/", "/")
        return f"mysql+pymysql://{access}"
    raise RuntimeError(f"No proper driver selected, choose {SQLITE_DRIVER!r} or {MYSQL_DRIVER!r}: {cfg.DB_DRIVER!r}")


def create_db_engine(url: str | None = None, cfg: Settings | None = None) -> Engine:
    cfg = cfg or settings
    url = url or build_database_url(cfg)
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        db_path = url.split(":///", 1)[-1]
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(
            url,
            connect_args={
                "check_same_thread": False,
                "timeout": max(cfg.SQLITE_BUSY_TIMEOUT_MS, 0) / 1000.0,
            },
            echo=False,
        )
    else:
        engine = create_engine(url, pool_pre_ping=True, echo=False)
    _install_hooks(engine, is_sqlite)
    return engine


def _install_hooks(engine: Engine, is_sqlite: bool) -> None:
    if is_sqlite:
        # WAL keeps readers from blocking on the single writer.
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    @event.listens_for(engine, "before_cursor_execute")
    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        check_deadline("store")
        conn.info.setdefault("_query_start_time", []).append(time.perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start_stack = conn.info.get("_query_start_time")
        if not start_stack:
            return
        started = start_stack.pop()
        duration_ms = max((time.perf_counter() - started) * 1000.0, 0.0)
        logger.debug("query took %.2fms: %s", duration_ms, statement.split("\n", 1)[0][:120])
