from __future__ import annotations

import logging
from typing import Any

import httpx

from config import Settings, settings
from db.store import Store
from services.deadline_context import check_deadline, get_deadline
from services.errors import (
    FetchError,
    NoROAForSubsError,
    PsychonautwikiEmptyRespError,
    StructSliceEmptyError,
)
from services.info_service import add_info_rows, check_if_exists
from services.names_service import NAME_TYPE_SUBSTANCE, resolve
from services.records import InfoRow

logger = logging.getLogger(__name__)

COMPONENT = "fetch_from_source"

_RANGE = "{ min max }"
_PHASE = "{ min max units }"

SUBSTANCES_QUERY = (
    "query ($dn: String) { substances(query: $dn) { name roas { name "
    f"dose {{ units threshold light {_RANGE} common {_RANGE} strong {_RANGE} }} "
    f"duration {{ onset {_PHASE} comeup {_PHASE} peak {_PHASE} offset {_PHASE} total {_PHASE} }} "
    "} } }"
)


def source_url(cfg: Settings | None = None) -> str:
    cfg = cfg or settings
    address = (cfg.SOURCE_API_ADDRESS or "").strip().rstrip("/")
    if address.startswith(("http://", "https://")):
        return address
    return f"https://{address}"


def _request_timeout(cfg: Settings) -> float | None:
    timeout = cfg.timeout_seconds
    deadline = get_deadline()
    if deadline is not None:
        remaining = max(deadline.remaining(), 0.001)
        timeout = remaining if timeout is None else min(timeout, remaining)
    return timeout


def build_client(cfg: Settings | None = None, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    cfg = cfg or settings
    return httpx.Client(
        timeout=_request_timeout(cfg),
        follow_redirects=True,
        proxy=cfg.PROXY_URL or None,
        transport=transport,
        headers={"User-Agent": "DoseJournal/1.0"},
    )


def query_substances(drug: str, client: httpx.Client, cfg: Settings | None = None) -> list[dict[str, Any]]:
    cfg = cfg or settings
    check_deadline(COMPONENT)
    try:
        resp = client.post(source_url(cfg), json={"query": SUBSTANCES_QUERY, "variables": {"dn": drug}})
        resp.raise_for_status()
        data = resp.json()
    except httpx.TimeoutException as exc:
        raise FetchError(f"timed out querying {cfg.USE_SOURCE}: {exc}", component=COMPONENT) from exc
    except httpx.HTTPError as exc:
        raise FetchError(f"error from {cfg.USE_SOURCE} API: {exc}", component=COMPONENT) from exc
    except ValueError as exc:
        raise FetchError(f"invalid JSON from {cfg.USE_SOURCE} API: {exc}", component=COMPONENT) from exc

    if not isinstance(data, dict):
        raise PsychonautwikiEmptyRespError("unexpected response shape", component=COMPONENT)
    errors = data.get("errors")
    if errors:
        messages = "; ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)
        raise FetchError(f"error from {cfg.USE_SOURCE} API: {messages}", component=COMPONENT)
    substances = (data.get("data") or {}).get("substances") or []
    if not substances:
        raise PsychonautwikiEmptyRespError(
            f"for {drug!r}, so query is wrong or connection is broken", component=COMPONENT
        )
    return substances


def _num(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _range(block: dict | None) -> tuple[float, float]:
    block = block or {}
    return _num(block.get("min")), _num(block.get("max"))


def _phase(duration: dict, name: str) -> tuple[float, float, str]:
    block = duration.get(name) or {}
    low, high = _range(block)
    return low, high, block.get("units") or ""


def roa_to_info_row(substance_name: str, roa: dict[str, Any]) -> InfoRow:
    dose = roa.get("dose") or {}
    duration = roa.get("duration") or {}
    low = _range(dose.get("light"))
    medium = _range(dose.get("common"))
    high = _range(dose.get("strong"))
    onset = _phase(duration, "onset")
    comeup = _phase(duration, "comeup")
    peak = _phase(duration, "peak")
    offset = _phase(duration, "offset")
    total = _phase(duration, "total")
    return InfoRow(
        drug_name=substance_name,
        drug_route=roa.get("name") or "",
        threshold=_num(dose.get("threshold")),
        low_dose_min=low[0],
        low_dose_max=low[1],
        medium_dose_min=medium[0],
        medium_dose_max=medium[1],
        high_dose_min=high[0],
        high_dose_max=high[1],
        dose_units=dose.get("units") or "",
        onset_min=onset[0],
        onset_max=onset[1],
        onset_units=onset[2],
        come_up_min=comeup[0],
        come_up_max=comeup[1],
        come_up_units=comeup[2],
        peak_min=peak[0],
        peak_max=peak[1],
        peak_units=peak[2],
        offset_min=offset[0],
        offset_max=offset[1],
        offset_units=offset[2],
        total_dur_min=total[0],
        total_dur_max=total[1],
        total_dur_units=total[2],
    )


def substances_to_info_rows(substances: list[dict[str, Any]]) -> list[InfoRow]:
    rows: list[InfoRow] = []
    no_roas: list[str] = []
    for substance in substances:
        name = substance.get("name") or ""
        roas = substance.get("roas") or []
        if not roas:
            logger.warning("No roas for: %s", name)
            no_roas.append(name)
            continue
        for roa in roas:
            if not roa.get("name"):
                continue
            logger.debug("From source: substance %s; route %s", name, roa.get("name"))
            rows.append(roa_to_info_row(name, roa))
    if not rows:
        if no_roas and len(no_roas) == len(substances):
            raise NoROAForSubsError(", ".join(no_roas), component=COMPONENT)
        raise StructSliceEmptyError(component=COMPONENT)
    return rows


def fetch_from_source(
    store: Store,
    drug: str,
    client: httpx.Client | None = None,
    cfg: Settings | None = None,
) -> list[InfoRow]:
    """Fetch a drug's routes from the source API into the info table.

    Returns the inserted rows, or an empty list when automatic fetching is
    off or the drug is already present.
    """
    cfg = cfg or store.settings
    if not cfg.AUTO_FETCH:
        logger.info("Automatic fetching is disabled, returning")
        return []

    drug = resolve(store, drug, NAME_TYPE_SUBSTANCE)
    if check_if_exists(store, drug):
        logger.info("Drug %s already in DB, not fetching", drug)
        return []

    logger.info("Fetching %s from source: %s", drug, cfg.USE_SOURCE)
    if client is None:
        with build_client(cfg) as own_client:
            substances = query_substances(drug, own_client, cfg)
    else:
        substances = query_substances(drug, client, cfg)

    return add_info_rows(store, substances_to_info_rows(substances))
