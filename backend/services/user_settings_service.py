from __future__ import annotations

import logging

from sqlalchemy import insert, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from db.models import UserSetting
from db.store import Store
from services.errors import (
    InvalidColInputError,
    InvalidValueError,
    LogDoesntExistError,
    NoLogsError,
    NotFoundError,
)
from services.log_service import FORGET_SENTINEL, get_logs, log_exists
from services.records import LogRow

logger = logging.getLogger(__name__)

USER_SETTING_COLUMNS = ("use_id_for_remember",)
SETTING_ALIASES = {
    "useIDForRemember": "use_id_for_remember",
    "remember": "use_id_for_remember",
}


def _setting_column(name: str, component: str) -> str:
    column = SETTING_ALIASES.get(name, name)
    if column not in USER_SETTING_COLUMNS:
        raise InvalidColInputError(repr(name), component=component)
    return column


def _insert_settings_row(dialect_name: str, user: str):
    """Insert of the default settings row that leaves an existing row alone."""
    values = {"username": user, "use_id_for_remember": FORGET_SENTINEL}
    if dialect_name == "sqlite":
        return sqlite_insert(UserSetting).values(**values).on_conflict_do_nothing(index_elements=["username"])
    return insert(UserSetting).values(**values).prefix_with("IGNORE")


def init_user_settings(store: Store, user: str) -> None:
    with store.transaction("init_user_settings") as tx:
        tx.execute(_insert_settings_row(tx.dialect_name, user))
    logger.info("User settings initialized for %s", user)


def _check_remember_value(store: Store, user: str, value: str, component: str) -> None:
    if value == FORGET_SENTINEL:
        return
    try:
        log_id = int(value)
    except ValueError as exc:
        raise InvalidValueError(f"couldn't convert {value!r} to an integer", component=component) from exc
    if not log_exists(store, user, log_id):
        raise LogDoesntExistError(f"user {user!r}, ID {log_id}", component=component)


def set_user_setting(store: Store, setting: str, user: str, value: str) -> None:
    component = "set_user_setting"
    column = _setting_column(setting, component)
    if not user:
        raise InvalidValueError("please specify a username", component=component)
    if value is None or str(value) == "":
        raise InvalidValueError("please specify a value to set", component=component)
    value = str(value)
    if column == "use_id_for_remember":
        _check_remember_value(store, user, value, component)
    # Concurrent first writes for a user all land on the same row.
    with store.transaction(component) as tx:
        tx.execute(_insert_settings_row(tx.dialect_name, user))
        tx.execute(update(UserSetting).where(UserSetting.username == user).values({column: value}))
    logger.debug("%s: setting %s changed to %s", user, column, value)


def get_user_setting(store: Store, setting: str, user: str) -> str:
    component = "get_user_setting"
    column = _setting_column(setting, component)
    with store.session(component) as db:
        row = db.query(getattr(UserSetting, column)).filter(UserSetting.username == user).first()
    if row is None:
        raise NotFoundError(f"no settings for user {user!r}", component=component)
    return row[0]


def remember_dosing(store: Store, user: str, log_id: int = 0) -> int:
    """Remember a log so its drug, route and units can be reused, 0 picks the newest."""
    component = "remember_dosing"
    if log_id:
        if not log_exists(store, user, log_id):
            raise NoLogsError(f"user {user!r}, ID {log_id}", component=component)
    else:
        log_id = get_logs(store, user, num=1, desc=True)[0].time_of_dose_start
    set_user_setting(store, "use_id_for_remember", user, str(int(log_id)))
    return int(log_id)


def recall_dosing(store: Store, user: str) -> LogRow | None:
    """The remembered log, or None when nothing is remembered."""
    component = "recall_dosing"
    try:
        got = get_user_setting(store, "use_id_for_remember", user)
    except NotFoundError:
        return None
    if got == FORGET_SENTINEL:
        return None
    try:
        log_id = int(got)
    except ValueError as exc:
        raise InvalidValueError(f"couldn't convert {got!r} to an integer", component=component) from exc
    return get_logs(store, user, num=1, log_id=log_id)[0]


def forget_dosing(store: Store, user: str) -> None:
    set_user_setting(store, "use_id_for_remember", user, FORGET_SENTINEL)
