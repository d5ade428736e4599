from __future__ import annotations

import logging
import time
from dataclasses import replace

from sqlalchemy import delete, insert, select

from db.store import Store
from services.errors import EmptyListDrugNamesError, InvalidValueError, NoDrugInfoTableError
from services.names_service import NAME_TYPE_SUBSTANCE, NAME_TYPE_UNITS, resolve
from services.records import InfoRow

logger = logging.getLogger(__name__)


def validate_info_row(row: InfoRow) -> None:
    if not row.drug_name or not row.drug_route:
        raise InvalidValueError("drug name and route are required", component="add_info_rows")
    for band, (low, high) in row.bands().items():
        if low < 0 or high < 0:
            raise InvalidValueError(f"{row.drug_name}/{row.drug_route}: negative {band}", component="add_info_rows")
        if low and high and low > high:
            raise InvalidValueError(
                f"{row.drug_name}/{row.drug_route}: {band} min {low:g} > max {high:g}",
                component="add_info_rows",
            )
    if row.threshold < 0:
        raise InvalidValueError(f"{row.drug_name}/{row.drug_route}: negative threshold", component="add_info_rows")


def add_info_rows(store: Store, rows: list[InfoRow]) -> list[InfoRow]:
    """Insert the fetched routes of a drug in a single transaction."""
    now = int(time.time())
    prepared = []
    for row in rows:
        validate_info_row(row)
        prepared.append(
            replace(row, dose_units=resolve(store, row.dose_units, NAME_TYPE_UNITS), time_of_fetch=now)
        )

    table = store.info_table()
    with store.transaction("add_info_rows") as tx:
        stmt = tx.prepare(insert(table))
        for row in prepared:
            stmt.execute(row.to_dict())
    logger.info("Data added to info table %s: %s", store.source, ", ".join(f"{r.drug_name}/{r.drug_route}" for r in prepared))
    return prepared


def check_if_exists(store: Store, drug: str, route: str | None = None, units: str | None = None) -> bool:
    """True when the info table has ``drug`` (and, if given, that route and units)."""
    table = store.info_table()
    stmt = select(table.c.drug_name).where(table.c.drug_name == drug)
    if route is not None:
        stmt = stmt.where(table.c.drug_route == route)
    if units is not None:
        stmt = stmt.where(table.c.dose_units == units)
    with store.session("check_if_exists") as db:
        return db.execute(stmt.limit(1)).first() is not None


def get_info(store: Store, drug: str) -> list[InfoRow]:
    drug = resolve(store, drug, NAME_TYPE_SUBSTANCE)
    table = store.info_table()
    with store.session("get_info") as db:
        rows = db.execute(select(table).where(table.c.drug_name == drug).order_by(table.c.drug_route)).all()
    if not rows:
        raise NoDrugInfoTableError(repr(drug), component="get_info")
    return [InfoRow.from_mapping(r._mapping) for r in rows]


def list_drug_names(store: Store) -> list[str]:
    table = store.info_table()
    with store.session("list_drug_names") as db:
        names = list(db.execute(select(table.c.drug_name).distinct().order_by(table.c.drug_name)).scalars())
    if not names:
        raise EmptyListDrugNamesError(f"source {store.source}", component="list_drug_names")
    return names


def remove_drug_info(store: Store, drug: str) -> str:
    drug = resolve(store, drug, NAME_TYPE_SUBSTANCE)
    if not check_if_exists(store, drug):
        raise NoDrugInfoTableError(repr(drug), component="remove_drug_info")
    table = store.info_table()
    with store.transaction("remove_drug_info") as tx:
        tx.execute(delete(table).where(table.c.drug_name == drug))
    logger.info("Data removed from info table: %s; source: %s", drug, store.source)
    return drug
