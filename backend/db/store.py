from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from functools import lru_cache
from pathlib import Path
from typing import Iterator

from sqlalchemy import MetaData, Table, inspect, text
from sqlalchemy.engine import Connection, Engine, Row
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from config import Settings, settings
from db.database import Base, create_db_engine
from db.models import ALT_NAMES_TABLE_NAMES, alt_names_table, alt_names_table_name, info_table
from services.deadline_context import check_deadline
from services.errors import DoseJournalError, StoreError, TransactionAbortedError


logger = logging.getLogger(__name__)


def _as_store_error(exc: BaseException, component: str) -> DoseJournalError:
    if isinstance(exc, DoseJournalError):
        return exc
    orig = getattr(exc, "orig", None)
    return StoreError(str(orig or exc), component=component)


class PreparedStatement:
    """A statement bound to one transaction.

    Failures go through the owning transaction, so a failed statement
    aborts the whole transaction.
    """

    def __init__(self, tx: "Transaction", statement):
        self._tx = tx
        self.statement = statement

    def execute(self, params: dict | list[dict] | None = None) -> int:
        return self._tx.execute(self.statement, params).rowcount

    def query_row(self, params: dict | None = None) -> Row | None:
        return self._tx.query_row(self.statement, params)

    def query_rows(self, params: dict | None = None) -> list[Row]:
        return self._tx.query_rows(self.statement, params)


class Transaction:
    """One database transaction with rollback on the first failing step.

    After a failure the error is kept in ``error`` and every further step,
    ``commit`` included, raises ``TransactionAbortedError``.
    """

    def __init__(self, connection: Connection, component: str):
        self.component = component
        self.error: DoseJournalError | None = None
        self._conn = connection
        self._trans = connection.begin()
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def connection(self) -> Connection:
        return self._conn

    @property
    def dialect_name(self) -> str:
        return self._conn.dialect.name

    def _guard(self) -> None:
        if self.error is not None:
            raise TransactionAbortedError(str(self.error), component=self.component) from self.error
        if self._finished:
            raise TransactionAbortedError("transaction already finished", component=self.component)
        try:
            check_deadline(self.component)
        except DoseJournalError as exc:
            self._fail(exc)

    def _fail(self, exc: BaseException):
        err = _as_store_error(exc, self.component)
        self.error = err
        if not self._finished:
            self._finished = True
            try:
                self._trans.rollback()
            except SQLAlchemyError as rollback_exc:
                logger.warning("%s: rollback failed: %s", self.component, rollback_exc)
        if err is exc:
            raise err
        raise err from exc

    def prepare(self, statement) -> PreparedStatement:
        self._guard()
        if isinstance(statement, str):
            statement = text(statement)
        try:
            statement.compile(dialect=self._conn.dialect)
        except SQLAlchemyError as exc:
            self._fail(exc)
        return PreparedStatement(self, statement)

    def execute(self, statement, params: dict | list[dict] | None = None):
        self._guard()
        if isinstance(statement, str):
            statement = text(statement)
        try:
            return self._conn.execute(statement, params)
        except (SQLAlchemyError, DoseJournalError) as exc:
            self._fail(exc)

    def query_row(self, statement, params: dict | None = None) -> Row | None:
        return self.execute(statement, params).first()

    def query_rows(self, statement, params: dict | None = None) -> list[Row]:
        return list(self.execute(statement, params).all())

    def commit(self) -> None:
        self._guard()
        try:
            self._trans.commit()
        except SQLAlchemyError as exc:
            self._fail(exc)
        self._finished = True

    def rollback(self) -> None:
        if self._finished:
            return
        self._finished = True
        try:
            self._trans.rollback()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc), component=self.component) from exc

    def close(self) -> None:
        try:
            self.rollback()
        finally:
            self._conn.close()


class Store:
    """Transactional persistence for the journal, info and names tables."""

    def __init__(self, engine: Engine, source: str | None = None, cfg: Settings | None = None):
        self.engine = engine
        self.settings = cfg or settings
        self.source = source or self.settings.USE_SOURCE
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        # Alt-names tables known to carry their sentinel row.
        self.seeded_tables: set[str] = set()
        self.seed_lock = threading.Lock()

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def begin(self, component: str) -> Transaction:
        check_deadline(component)
        try:
            connection = self.engine.connect()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc), component=component) from exc
        try:
            return Transaction(connection, component)
        except SQLAlchemyError as exc:
            connection.close()
            raise StoreError(str(exc), component=component) from exc

    @contextmanager
    def transaction(self, component: str) -> Iterator[Transaction]:
        tx = self.begin(component)
        try:
            yield tx
            if not tx.finished:
                tx.commit()
        finally:
            tx.close()

    @contextmanager
    def session(self, component: str) -> Iterator[Session]:
        check_deadline(component)
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as exc:
            raise _as_store_error(exc, component) from exc
        finally:
            db.close()

    # --- Schema ---

    def info_table(self) -> Table:
        return info_table(self.source)

    def alt_names_table(self, name_type: str, source_specific: bool = False) -> Table:
        name = alt_names_table_name(name_type, self.source if source_specific else None)
        return alt_names_table(name)

    def all_alt_names_table_names(self) -> list[str]:
        names = [alt_names_table_name(t) for t in ALT_NAMES_TABLE_NAMES]
        names += [alt_names_table_name(t, self.source) for t in ALT_NAMES_TABLE_NAMES]
        return names

    def init_all_tables(self) -> None:
        component = "init_all_tables"
        check_deadline(component)
        try:
            with self.engine.begin() as conn:
                Base.metadata.create_all(conn, checkfirst=True)
                self.info_table().create(conn, checkfirst=True)
                for name in self.all_alt_names_table_names():
                    alt_names_table(name).create(conn, checkfirst=True)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc), component=component) from exc
        logger.debug("Ran through all tables for initialisation (source %s)", self.source)

    def table_exists(self, name: str) -> bool:
        try:
            return inspect(self.engine).has_table(name)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc), component="table_exists") from exc

    def _drop(self, component: str, names: list[str]) -> list[str]:
        check_deadline(component)
        dropped = []
        try:
            with self.engine.begin() as conn:
                existing = set(inspect(conn).get_table_names())
                for name in names:
                    if name not in existing:
                        continue
                    Table(name, MetaData()).drop(conn)
                    dropped.append(name)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc), component=component) from exc
        with self.seed_lock:
            self.seeded_tables.difference_update(dropped)
        return dropped

    def clean_db(self) -> list[str]:
        """Drop every table in the database."""
        try:
            names = inspect(self.engine).get_table_names()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc), component="clean_db") from exc
        dropped = self._drop("clean_db", names)
        logger.info("Removed tables: %s", ", ".join(dropped))
        return dropped

    def clean_info_table(self) -> None:
        self._drop("clean_info_table", [self.source])
        logger.info("The info table %s removed from DB", self.source)

    def clean_names_tables(self, replace_only: bool = False) -> list[str]:
        """Drop the alt-names tables.

        With ``replace_only`` only the overlay tables of the active source go,
        the global ones stay.
        """
        names = self.all_alt_names_table_names()
        if replace_only:
            names = names[len(ALT_NAMES_TABLE_NAMES):]
        dropped = self._drop("clean_names_tables", names)
        logger.info("Removed names tables: %s", ", ".join(dropped))
        return dropped

    def get_db_size(self) -> int:
        """Size of the database in bytes."""
        component = "get_db_size"
        check_deadline(component)
        if self.dialect_name == "sqlite":
            db_path = self.engine.url.database
            if not db_path or db_path == ":memory:":
                return 0
            try:
                return Path(db_path).stat().st_size
            except OSError as exc:
                raise StoreError(f"{db_path}: {exc}", component=component) from exc
        query = text(
            "select SUM(data_length + index_length) from information_schema.tables "
            "where table_schema = :schema"
        )
        try:
            with self.engine.connect() as conn:
                total = conn.execute(query, {"schema": self.engine.url.database}).scalar()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc), component=component) from exc
        return int(total or 0)


def build_store(url: str | None = None, cfg: Settings | None = None, source: str | None = None) -> Store:
    cfg = cfg or settings
    store = Store(create_db_engine(url, cfg), source=source, cfg=cfg)
    store.init_all_tables()
    return store


@lru_cache
def get_store() -> Store:
    return build_store()
