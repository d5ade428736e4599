from __future__ import annotations

import logging

from sqlalchemy import func, select

from db.models import UserLog
from db.store import Store
from services.log_service import get_logged_names
from services.records import Cost

logger = logging.getLogger(__name__)


def get_total_costs(store: Store, user: str) -> list[Cost]:
    """Total cost per (substance, currency) over every log of ``user``.

    Every pair gets an entry, zero totals included. Stored names are summed
    as they are, so a later change to the alt-names tables doesn't hide them.
    """
    drugs = get_logged_names(store, "drug_name", user=user)
    currencies = get_logged_names(store, "cost_currency", user=user)

    stmt = (
        select(UserLog.drug_name, UserLog.cost_currency, func.sum(UserLog.cost))
        .where(UserLog.username == user)
        .group_by(UserLog.drug_name, UserLog.cost_currency)
    )
    # Text columns compare case-insensitively, so does the fold.
    totals: dict[tuple[str, str], float] = {}
    with store.session("get_total_costs") as db:
        for drug, currency, total in db.execute(stmt):
            key = (drug.lower(), (currency or "").lower())
            totals[key] = totals.get(key, 0.0) + float(total or 0)

    costs = [
        Cost(substance=drug, cost_currency=currency, total_cost=totals.get((drug.lower(), currency.lower()), 0.0))
        for drug in drugs
        for currency in currencies
    ]
    logger.debug("Costs for %s: %d entries", user, len(costs))
    return costs
