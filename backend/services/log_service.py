from __future__ import annotations

import logging
import time

from sqlalchemy import String, cast, delete, func, or_, select, update

from db.models import UserLog, UserSetting
from db.store import Store
from services.errors import (
    InvalidColInputError,
    InvalidValueError,
    LogDoesntExistError,
    NoLogsError,
    NoUsersReturnedError,
)
from services.names_service import (
    NAME_TYPE_ROUTE,
    NAME_TYPE_SUBSTANCE,
    NAME_TYPE_UNITS,
    resolve,
    resolve_any,
)
from services.records import LOG_COLUMN_KINDS, SEARCH_COLUMNS, TIME_COLUMNS, LogRow, log_column

logger = logging.getLogger(__name__)

FORGET_SENTINEL = "0"

# Columns whose values are names and go through the resolver first.
COLUMN_NAME_TYPES = {
    "drug_name": NAME_TYPE_SUBSTANCE,
    "drug_route": NAME_TYPE_ROUTE,
    "dose_units": NAME_TYPE_UNITS,
}


def coerce_column_value(column: str, value, component: str):
    """Convert ``value`` to the Python type of a log column.

    ``"now"`` is accepted for the time columns.
    """
    kind = LOG_COLUMN_KINDS[column]
    if column in TIME_COLUMNS and isinstance(value, str) and value.strip().lower() == "now":
        return int(time.time())
    if kind is str:
        return str(value)
    try:
        converted = kind(str(value).strip()) if isinstance(value, str) else kind(value)
    except (TypeError, ValueError) as exc:
        raise InvalidValueError(f"{column} needs {kind.__name__}, got {value!r}", component=component) from exc
    if converted < 0:
        raise InvalidValueError(f"{column} can't be negative: {value!r}", component=component)
    return converted


def get_logs(
    store: Store,
    user: str,
    num: int = 0,
    log_id: int = 0,
    desc: bool = False,
    search: str = "",
    exact_column: str = "",
) -> list[LogRow]:
    """Logs of ``user`` ordered by start time.

    ``num`` limits the count (0 means all), ``log_id`` picks one row.
    ``search`` is a case-insensitive substring over the searchable columns,
    or an exact match on ``exact_column`` when that is given.
    """
    component = "get_logs"
    query_filters = [UserLog.username == user]
    if log_id:
        query_filters.append(UserLog.time_of_dose_start == int(log_id))
    elif search and exact_column:
        column = log_column(exact_column, component)
        name_type = COLUMN_NAME_TYPES.get(column)
        value = resolve(store, search, name_type) if name_type else search
        query_filters.append(getattr(UserLog, column) == coerce_column_value(column, value, component))
    elif search:
        search = resolve_any(store, search)
        pattern = f"%{search}%"
        query_filters.append(
            or_(*[cast(getattr(UserLog, col), String).ilike(pattern) for col in SEARCH_COLUMNS])
        )
    elif exact_column:
        log_column(exact_column, component)

    with store.session(component) as db:
        q = db.query(UserLog).filter(*query_filters)
        order = UserLog.time_of_dose_start.desc() if desc else UserLog.time_of_dose_start.asc()
        q = q.order_by(order)
        if num and not log_id:
            q = q.limit(int(num))
        logs = [LogRow.from_model(row) for row in q.all()]
    if not logs:
        raise NoLogsError(f"user {user!r}", component=component)
    return logs


def get_logs_count(store: Store, user: str) -> int:
    with store.session("get_logs_count") as db:
        return int(db.query(func.count(UserLog.time_of_dose_start)).filter(UserLog.username == user).scalar() or 0)


def get_users(store: Store) -> list[str]:
    with store.session("get_users") as db:
        users = [row[0] for row in db.query(UserLog.username).distinct().order_by(UserLog.username).all()]
    if not users:
        raise NoUsersReturnedError(component="get_users")
    return users


def get_logged_names(store: Store, column: str, user: str | None = None, info: bool = False) -> list[str]:
    """Distinct values of one column, from a user's logs or from the info table."""
    component = "get_logged_names"
    if info:
        table = store.info_table()
        if column not in table.c:
            raise InvalidColInputError(repr(column), component=component)
        stmt = select(table.c[column]).distinct().order_by(table.c[column])
    else:
        col = getattr(UserLog, log_column(column, component))
        stmt = select(col).distinct().order_by(col)
        if user is not None:
            stmt = stmt.where(UserLog.username == user)
    with store.session(component) as db:
        return [value for value in db.execute(stmt).scalars()]


def log_exists(store: Store, user: str, log_id: int) -> bool:
    with store.session("log_exists") as db:
        found = (
            db.query(UserLog.time_of_dose_start)
            .filter(UserLog.username == user, UserLog.time_of_dose_start == int(log_id))
            .first()
        )
    return found is not None


def remove_logs(
    store: Store,
    user: str,
    amount: int = 0,
    reverse: bool = False,
    log_id: int = 0,
    search: str = "",
    exact_column: str = "",
) -> int:
    """Delete logs of ``user`` and return how many went.

    A search selects the rows (and clears ``amount``), otherwise ``log_id``
    picks one row, ``amount`` the first rows in the chosen order, and with
    none of them every log of the user is removed. A remembered log that
    gets removed resets the user's remember setting.
    """
    component = "remove_logs"
    if search:
        amount = 0

    removed_ids: list[int] | None
    if (amount and not log_id) or search:
        logs = get_logs(store, user, num=amount, desc=reverse, search=search, exact_column=exact_column)
        removed_ids = [log.time_of_dose_start for log in logs]
        stmt = delete(UserLog).where(UserLog.username == user, UserLog.time_of_dose_start.in_(removed_ids))
    elif log_id:
        if not log_exists(store, user, log_id):
            raise LogDoesntExistError(f"ID {log_id}", component=component)
        removed_ids = [int(log_id)]
        stmt = delete(UserLog).where(UserLog.username == user, UserLog.time_of_dose_start == int(log_id))
    else:
        removed_ids = None
        stmt = delete(UserLog).where(UserLog.username == user)

    reset = update(UserSetting).where(UserSetting.username == user).values(use_id_for_remember=FORGET_SENTINEL)
    if removed_ids is not None:
        reset = reset.where(UserSetting.use_id_for_remember.in_([str(i) for i in removed_ids]))

    with store.transaction(component) as tx:
        removed = tx.execute(stmt).rowcount
        tx.execute(reset)
    logger.debug(
        "Removed %d logs: user %s; amount %s; reverse %s; id %s; search %r",
        removed, user, amount, reverse, log_id, search,
    )
    return removed


def change_log(store: Store, column: str, log_id: int, user: str, value) -> LogRow:
    """Set one column of one log, ``log_id`` 0 means the newest log."""
    component = "change_log"
    column = log_column(column, component)
    if column == "username":
        raise InvalidColInputError("username can't be changed", component=component)
    new_value = coerce_column_value(column, value, component)
    if column in COLUMN_NAME_TYPES:
        new_value = resolve(store, new_value, COLUMN_NAME_TYPES[column])

    if log_id:
        if not log_exists(store, user, log_id):
            raise LogDoesntExistError(f"ID {log_id}", component=component)
        current = get_logs(store, user, log_id=log_id)[0]
    else:
        current = get_logs(store, user, num=1, desc=True)[0]

    if column == "time_of_dose_end" and new_value and new_value < current.time_of_dose_start:
        raise InvalidValueError("end time is before the start time", component=component)
    if column == "time_of_dose_start":
        if current.time_of_dose_end and current.time_of_dose_end < new_value:
            raise InvalidValueError("start time is after the end time", component=component)
        if new_value != current.time_of_dose_start and log_exists(store, user, new_value):
            raise InvalidValueError(f"a log with ID {new_value} already exists", component=component)

    where = (UserLog.username == user, UserLog.time_of_dose_start == current.time_of_dose_start)
    with store.transaction(component) as tx:
        tx.execute(update(UserLog).where(*where).values({column: new_value}))
        if column == "time_of_dose_start":
            tx.execute(
                update(UserSetting)
                .where(
                    UserSetting.username == user,
                    UserSetting.use_id_for_remember == str(current.time_of_dose_start),
                )
                .values(use_id_for_remember=str(new_value))
            )

    new_id = new_value if column == "time_of_dose_start" else current.time_of_dose_start
    logger.info("Entry %s changed: %s to %r", current.time_of_dose_start, column, new_value)
    return get_logs(store, user, log_id=new_id)[0]
