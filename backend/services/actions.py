from __future__ import annotations

import contextvars
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from db.store import Store
from services import cost_service, fetch_service, info_service, log_service, progression_service
from services import user_settings_service, write_coordinator
from services.deadline_context import operation_timeout
from services.errors import DoseJournalError

logger = logging.getLogger(__name__)


class Action(str, Enum):
    ADD_TO_INFO_TABLE = "add-to-info-table"
    ADD_TO_DOSE_TABLE = "add-to-dose-table"
    GET_LOGS = "get-logs"
    GET_LOGS_COUNT = "get-logs-count"
    REMOVE_LOGS = "remove-logs"
    CHANGE_LOG = "change-log"
    REMOVE_SINGLE_DRUG_INFO = "remove-single-drug-info"
    FETCH_FROM_PSYCHONAUTWIKI = "fetch-from-psychonautwiki"
    GET_TIMES = "get-times"
    GET_TOTAL_COSTS = "get-total-costs"
    SET_USER_SETTINGS = "set-user-settings"
    GET_USER_SETTINGS = "get-user-settings"
    REMEMBER_DOSING = "remember-dosing"
    RECALL_DOSING = "recall-dosing"
    FORGET_DOSING = "forget-dosing"


@dataclass(frozen=True)
class ActionRequest:
    action: Action
    username: str = ""
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one request, failures travel in ``err``."""

    action: Action
    username: str = ""
    value: Any = None
    err: DoseJournalError | None = None

    @property
    def ok(self) -> bool:
        return self.err is None


def _with_user(func: Callable[..., Any]) -> Callable[[Store, ActionRequest], Any]:
    def handler(store: Store, request: ActionRequest) -> Any:
        return func(store, request.username, **request.params)

    return handler


def _without_user(func: Callable[..., Any]) -> Callable[[Store, ActionRequest], Any]:
    def handler(store: Store, request: ActionRequest) -> Any:
        return func(store, **request.params)

    return handler


def _change_log(store: Store, request: ActionRequest) -> Any:
    params = dict(request.params)
    return log_service.change_log(store, params.pop("column"), params.pop("log_id", 0), request.username, params.pop("value"))


def _set_user_settings(store: Store, request: ActionRequest) -> Any:
    params = request.params
    return user_settings_service.set_user_setting(store, params["setting"], request.username, params["value"])


def _get_user_settings(store: Store, request: ActionRequest) -> Any:
    return user_settings_service.get_user_setting(store, request.params["setting"], request.username)


HANDLERS: dict[Action, Callable[[Store, ActionRequest], Any]] = {
    Action.ADD_TO_INFO_TABLE: _without_user(info_service.add_info_rows),
    Action.ADD_TO_DOSE_TABLE: _with_user(write_coordinator.append),
    Action.GET_LOGS: _with_user(log_service.get_logs),
    Action.GET_LOGS_COUNT: _with_user(log_service.get_logs_count),
    Action.REMOVE_LOGS: _with_user(log_service.remove_logs),
    Action.CHANGE_LOG: _change_log,
    Action.REMOVE_SINGLE_DRUG_INFO: _without_user(info_service.remove_drug_info),
    Action.FETCH_FROM_PSYCHONAUTWIKI: _without_user(fetch_service.fetch_from_source),
    Action.GET_TIMES: _with_user(progression_service.get_times),
    Action.GET_TOTAL_COSTS: _with_user(cost_service.get_total_costs),
    Action.SET_USER_SETTINGS: _set_user_settings,
    Action.GET_USER_SETTINGS: _get_user_settings,
    Action.REMEMBER_DOSING: _with_user(user_settings_service.remember_dosing),
    Action.RECALL_DOSING: _with_user(user_settings_service.recall_dosing),
    Action.FORGET_DOSING: _with_user(user_settings_service.forget_dosing),
}


def perform(store: Store, request: ActionRequest) -> ActionResult:
    handler = HANDLERS[request.action]
    try:
        value = handler(store, request)
    except DoseJournalError as exc:
        logger.debug("%s for %r failed: %s", request.action.value, request.username, exc)
        return ActionResult(action=request.action, username=request.username, err=exc)
    return ActionResult(action=request.action, username=request.username, value=value)


def run_concurrently(
    store: Store,
    requests: list[ActionRequest],
    max_workers: int | None = None,
    timeout: str | float | None = None,
) -> list[ActionResult]:
    """Run requests on a thread pool, one result per request in request order.

    Every worker runs in a copy of the caller's context, so a deadline opened
    around this call (or by ``timeout``) bounds all of them.
    """
    if not requests:
        return []
    workers = max_workers or min(32, len(requests))
    with operation_timeout(timeout):
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="dose-journal") as pool:
            futures = [
                pool.submit(contextvars.copy_context().run, perform, store, request)
                for request in requests
            ]
            return [future.result() for future in futures]
