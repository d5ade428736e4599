from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from sqlalchemy import insert

from db.models import UserLog
from db.store import Store
from services.conversion_service import convert_units
from services.errors import (
    ComboInputError,
    ConversionFailedError,
    InvalidValueError,
    MaxLogsPerUserError,
    NotFoundError,
    SemanticError,
    ValidationError,
)
from services.info_service import check_if_exists
from services.log_service import get_logs_count, remove_logs
from services.names_service import NAME_TYPE_ROUTE, NAME_TYPE_SUBSTANCE, NAME_TYPE_UNITS, resolve
from services.records import LogRow

logger = logging.getLogger(__name__)

COMPONENT = "append"


class WriteCoordinator:
    """Hands out start times that strictly increase per user.

    ``last`` holds the newest start time given to each user. It is only read
    and written with ``lock`` held, around the insert itself. Entries behind
    the clock can no longer bump a start time and are dropped, so it only
    holds users whose newest start time is not behind the clock.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self.lock = threading.Lock()
        self.last: dict[str, int] = {}
        self._clock = clock

    def _next_timestamp(self, user: str) -> int:
        ts = int(self._clock())
        self.last = {name: seen for name, seen in self.last.items() if seen >= ts}
        last = self.last.get(user)
        if last is not None and last >= ts:
            ts = last + 1
        return ts

    def append(
        self,
        store: Store,
        user: str,
        drug: str,
        route: str,
        dose: float,
        units: str,
        perc: float = 0,
        cost: float = 0,
        currency: str = "",
        end_time: int = 0,
    ) -> LogRow:
        cfg = store.settings
        dose = float(dose)
        perc = float(perc or 0)
        cost = float(cost or 0)
        end_time = int(end_time or 0)
        if not user:
            raise InvalidValueError("username is required", component=COMPONENT)
        if dose < 0 or cost < 0 or perc < 0 or end_time < 0:
            raise InvalidValueError("dose, percent, cost and end time can't be negative", component=COMPONENT)

        drug = resolve(store, drug, NAME_TYPE_SUBSTANCE)
        route = resolve(store, route, NAME_TYPE_ROUTE)
        units = resolve(store, units, NAME_TYPE_UNITS)

        if perc != 0:
            try:
                dose, units = convert_units(store, drug, dose, perc)
            except (ValidationError, SemanticError, NotFoundError) as exc:
                raise ConversionFailedError(
                    f"drug {drug!r}; dose {dose:g}; perc {perc:g}; units {units!r}",
                    component=COMPONENT,
                    cause=exc,
                ) from exc

        if not check_if_exists(store, drug, route, units):
            raise ComboInputError(
                f"drug {drug!r}; route {route!r}; units {units!r}; doesn't exist in info table {store.source}",
                component=COMPONENT,
            )

        # Checked without the lock, concurrent appends can briefly pass the cap.
        count = get_logs_count(store, user)
        if count >= cfg.MAX_LOGS_PER_USER:
            if not cfg.AUTO_REMOVE:
                raise MaxLogsPerUserError(
                    f"user {user!r} has {count}, limit {cfg.MAX_LOGS_PER_USER}; not logging",
                    component=COMPONENT,
                )
            evict = count - cfg.MAX_LOGS_PER_USER + 1
            removed = remove_logs(store, user, amount=evict, reverse=False)
            logger.info("Removed %d oldest logs of %s to stay under %d", removed, user, cfg.MAX_LOGS_PER_USER)

        if cost != 0 and not currency:
            currency = cfg.COST_CURRENCY

        with self.lock:
            ts = self._next_timestamp(user)
            if end_time and end_time < ts:
                raise InvalidValueError(f"end time {end_time} is before start time {ts}", component=COMPONENT)
            row = LogRow(
                time_of_dose_start=ts,
                username=user,
                time_of_dose_end=end_time,
                drug_name=drug,
                dose=dose,
                dose_units=units,
                drug_route=route,
                cost=cost,
                cost_currency=currency or "",
            )
            with store.transaction(COMPONENT) as tx:
                tx.execute(insert(UserLog).values(**row.to_dict()))
            self.last[user] = ts

        logger.info("Logged: drug %s; dose %g; units %s; route %s; username %s", drug, dose, units, route, user)
        return row


_COORDINATOR = WriteCoordinator()


def append(
    store: Store,
    user: str,
    drug: str,
    route: str,
    dose: float,
    units: str,
    perc: float = 0,
    cost: float = 0,
    currency: str = "",
    end_time: int = 0,
) -> LogRow:
    return _COORDINATOR.append(store, user, drug, route, dose, units, perc, cost, currency, end_time)
