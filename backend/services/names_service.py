from __future__ import annotations

import logging
import tomllib
from pathlib import Path

from sqlalchemy import insert, select
from sqlalchemy.exc import SQLAlchemyError

from config import settings
from db.models import alt_names_table, alt_names_table_name
from db.store import Store
from services.errors import InvalidValueError, NoNametypeError, NoNamesReturnedError, StoreError

logger = logging.getLogger(__name__)

NAME_TYPE_SUBSTANCE = "substance"
NAME_TYPE_ROUTE = "route"
NAME_TYPE_UNITS = "units"
NAME_TYPE_CONV_UNITS = "convUnits"

# Order matters for resolve_any: the first type that changes the input wins.
NAME_TYPES = (NAME_TYPE_SUBSTANCE, NAME_TYPE_ROUTE, NAME_TYPE_UNITS, NAME_TYPE_CONV_UNITS)

NAMES_FILES = {
    NAME_TYPE_SUBSTANCE: "gpd-substance-names.toml",
    NAME_TYPE_ROUTE: "gpd-route-names.toml",
    NAME_TYPE_UNITS: "gpd-units-names.toml",
    NAME_TYPE_CONV_UNITS: "gpd-units-conversions.toml",
}

SOURCE_NAMES_DIR = "source-names-local-configs"

# First row of every seeded table.
NAMES_MAGIC_WORD = "!TheTableIsNotEmpty!"


def _check_name_type(name_type: str, component: str) -> None:
    if name_type not in NAMES_FILES:
        raise NoNametypeError(repr(name_type), component=component)


def names_config_path(name_type: str, source: str | None = None, config_dir: Path | None = None) -> Path:
    _check_name_type(name_type, "names_config_path")
    base = Path(config_dir or settings.NAMES_CONFIG_DIR)
    if source:
        base = base / SOURCE_NAMES_DIR / source
    return base / NAMES_FILES[name_type]


def load_names_config(
    name_type: str,
    source: str | None = None,
    config_dir: Path | None = None,
) -> dict[str, list[str]] | None:
    """Read one alt-names file as ``{local_name: [alternative, ...]}``.

    Returns ``None`` when the file does not exist. Underscores in the local
    names become spaces, TOML keys can't hold them otherwise.
    """
    path = names_config_path(name_type, source, config_dir)
    try:
        with path.open("rb") as fh:
            raw = tomllib.load(fh)
    except FileNotFoundError:
        return None
    except tomllib.TOMLDecodeError as exc:
        raise InvalidValueError(f"{path}: {exc}", component="load_names_config") from exc

    names: dict[str, list[str]] = {}
    for local_name, entry in (raw.get("LocalName") or {}).items():
        alt_names = (entry or {}).get("AltNames") or []
        if not isinstance(alt_names, list):
            raise InvalidValueError(f"{path}: AltNames of {local_name!r} must be a list", component="load_names_config")
        names[local_name.replace("_", " ")] = [str(a) for a in alt_names]
    return names


def _table_name(store: Store, name_type: str, source_specific: bool) -> str:
    return alt_names_table_name(name_type, store.source if source_specific else None)


def _has_sentinel(store: Store, table_name: str) -> bool:
    table = alt_names_table(table_name)
    with store.session("names") as db:
        found = db.execute(
            select(table.c.local_name).where(table.c.local_name == NAMES_MAGIC_WORD).limit(1)
        ).first()
    return found is not None


def seed_names_table(
    store: Store,
    name_type: str,
    source_specific: bool = False,
    config_dir: Path | None = None,
) -> bool:
    """Copy one alt-names config into its table unless it's already there.

    Returns True when rows were inserted.
    """
    _check_name_type(name_type, "seed_names_table")
    table_name = _table_name(store, name_type, source_specific)
    with store.seed_lock:
        if table_name in store.seeded_tables:
            return False
        table = alt_names_table(table_name)
        try:
            table.create(store.engine, checkfirst=True)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc), component="seed_names_table") from exc
        if _has_sentinel(store, table_name):
            store.seeded_tables.add(table_name)
            return False

        names = load_names_config(
            name_type,
            store.source if source_specific else None,
            config_dir or store.settings.NAMES_CONFIG_DIR,
        )
        if names is None:
            logger.info("No %s names config for %s, table left empty", name_type, table_name)
        rows = [{"local_name": NAMES_MAGIC_WORD, "alternative_name": NAMES_MAGIC_WORD}]
        seen = set()
        for local_name, alt_names in (names or {}).items():
            for alt in alt_names:
                key = (local_name.lower(), alt.lower())
                if key in seen:
                    continue
                seen.add(key)
                rows.append({"local_name": local_name, "alternative_name": alt})

        with store.transaction("seed_names_table") as tx:
            stmt = tx.prepare(insert(table))
            # One row per execute keeps the ids in file order.
            for row in rows:
                stmt.execute(row)
        store.seeded_tables.add(table_name)
    logger.debug("%s names initialized, %d pairs in %s", name_type, len(rows) - 1, table_name)
    return True


def seed_all(store: Store, overwrite: bool = False, config_dir: Path | None = None) -> None:
    """Seed every global and overlay alt-names table.

    ``overwrite`` drops the tables first so the config files are read again.
    """
    if overwrite:
        store.clean_names_tables(replace_only=False)
    for name_type in NAME_TYPES:
        seed_names_table(store, name_type, False, config_dir)
        seed_names_table(store, name_type, True, config_dir)


def match_name(store: Store, input_name: str, name_type: str, source_specific: bool = False) -> str:
    """One table lookup: local name identity first, then alternative names."""
    _check_name_type(name_type, "match_name")
    seed_names_table(store, name_type, source_specific)
    table = alt_names_table(_table_name(store, name_type, source_specific))
    with store.session("match_name") as db:
        for column in (table.c.local_name, table.c.alternative_name):
            found = db.execute(select(table.c.local_name).where(column == input_name).limit(1)).scalar()
            if found:
                return found
    return input_name


def resolve(store: Store, input_name: str, name_type: str) -> str:
    """Canonical local name for ``input_name``, global table first, then the source overlay."""
    name = match_name(store, input_name, name_type, source_specific=False)
    return match_name(store, name, name_type, source_specific=True)


def resolve_any(store: Store, input_name: str) -> str:
    for name_type in NAME_TYPES:
        resolved = resolve(store, input_name, name_type)
        if resolved != input_name:
            return resolved
    return input_name


def get_all_alt_names(store: Store, input_name: str, name_type: str, source_specific: bool = True) -> list[str]:
    """All alternative names registered under a local name, in insertion order."""
    _check_name_type(name_type, "get_all_alt_names")
    local_name = match_name(store, input_name, name_type, source_specific)
    if local_name != input_name:
        logger.debug("For source %s local name %r is replaced with %r", store.source, input_name, local_name)
    table = alt_names_table(_table_name(store, name_type, source_specific))
    with store.session("get_all_alt_names") as db:
        names = list(
            db.execute(
                select(table.c.alternative_name)
                .where(table.c.local_name == local_name)
                .order_by(table.c.id)
            ).scalars()
        )
    if not names:
        where = f" for source {store.source}" if source_specific else ""
        raise NoNamesReturnedError(f"{local_name!r}{where}", component="get_all_alt_names")
    return names
