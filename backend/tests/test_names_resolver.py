from __future__ import annotations

import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.errors import InvalidValueError, NoNametypeError, NoNamesReturnedError  # noqa: E402
from services.names_service import (  # noqa: E402
    NAME_TYPE_CONV_UNITS,
    NAME_TYPE_ROUTE,
    NAME_TYPE_SUBSTANCE,
    NAME_TYPE_UNITS,
    NAME_TYPES,
    NAMES_MAGIC_WORD,
    get_all_alt_names,
    load_names_config,
    resolve,
    resolve_any,
    seed_all,
    seed_names_table,
)


def test_alt_names_seed_is_idempotent(store):
    assert resolve(store, "weed", NAME_TYPE_SUBSTANCE) == "cannabis"
    assert resolve(store, "cannabis", NAME_TYPE_SUBSTANCE) == "cannabis"

    assert seed_names_table(store, NAME_TYPE_SUBSTANCE) is False
    assert resolve(store, "marijuana", NAME_TYPE_SUBSTANCE) == "cannabis"
    assert get_all_alt_names(store, "weed", NAME_TYPE_SUBSTANCE, source_specific=False) == ["weed", "marijuana"]


def test_seed_is_skipped_when_a_fresh_store_finds_the_sentinel(store, make_store):
    resolve(store, "weed", NAME_TYPE_SUBSTANCE)
    reopened = make_store()
    assert seed_names_table(reopened, NAME_TYPE_SUBSTANCE) is False
    assert resolve(reopened, "weed", NAME_TYPE_SUBSTANCE) == "cannabis"


def test_resolution_is_case_insensitive_and_unknown_names_pass_through(store):
    assert resolve(store, "WEED", NAME_TYPE_SUBSTANCE) == "cannabis"
    assert resolve(store, "something else", NAME_TYPE_SUBSTANCE) == "something else"
    assert resolve(store, "po", NAME_TYPE_ROUTE) == "oral"


def test_overlay_applies_after_global_table(store):
    assert resolve(store, "booze", NAME_TYPE_SUBSTANCE) == "Alcohol"
    assert resolve(store, "pure ml", NAME_TYPE_UNITS) == "mL EtOH"


@pytest.mark.parametrize("name_type", NAME_TYPES)
@pytest.mark.parametrize("name", ["weed", "booze", "po", "milligrams", "hrs", "Alcohol", "unknown thing"])
def test_resolution_is_idempotent(store, name_type, name):
    once = resolve(store, name, name_type)
    assert resolve(store, once, name_type) == once


def test_resolve_any_uses_the_first_type_that_changes_the_name(store):
    assert resolve_any(store, "marijuana") == "cannabis"
    assert resolve_any(store, "swallowed") == "oral"
    assert resolve_any(store, "mins") == "minutes"
    assert resolve_any(store, "nothing") == "nothing"


def test_alt_names_keep_insertion_order_for_conversions(store):
    names = get_all_alt_names(store, "Alcohol", NAME_TYPE_CONV_UNITS, source_specific=True)
    assert names == ["Convert-Percent-To-Pure", "mL EtOH"]
    names = get_all_alt_names(store, "alcohol", NAME_TYPE_CONV_UNITS, source_specific=False)
    assert names == ["Convert-Milliliters-To-Grams", "g"]


def test_missing_names_raise_not_found(store):
    with pytest.raises(NoNamesReturnedError):
        get_all_alt_names(store, "caffeine", NAME_TYPE_CONV_UNITS)


def test_missing_config_file_seeds_sentinel_only(store):
    # The overlay has no route file.
    assert resolve(store, "oral", NAME_TYPE_ROUTE) == "oral"
    assert store.alt_names_table(NAME_TYPE_ROUTE, source_specific=True).name in store.seeded_tables
    with pytest.raises(NoNamesReturnedError):
        get_all_alt_names(store, "oral", NAME_TYPE_ROUTE, source_specific=True)
    assert get_all_alt_names(store, NAMES_MAGIC_WORD, NAME_TYPE_ROUTE, source_specific=True) == [NAMES_MAGIC_WORD]


def test_unknown_name_type_is_rejected(store):
    with pytest.raises(NoNametypeError):
        resolve(store, "weed", "colour")
    with pytest.raises(NoNametypeError):
        get_all_alt_names(store, "weed", "colour")


def test_load_names_config_turns_underscores_into_spaces(tmp_path):
    (tmp_path / "gpd-substance-names.toml").write_text(
        '[LocalName.magic_mushrooms]\nAltNames = ["shrooms"]\n', encoding="utf-8"
    )
    assert load_names_config(NAME_TYPE_SUBSTANCE, config_dir=tmp_path) == {"magic mushrooms": ["shrooms"]}
    assert load_names_config(NAME_TYPE_ROUTE, config_dir=tmp_path) is None


def test_broken_config_is_a_validation_error(tmp_path):
    (tmp_path / "gpd-units-names.toml").write_text("[LocalName.mg\nAltNames = [", encoding="utf-8")
    with pytest.raises(InvalidValueError):
        load_names_config(NAME_TYPE_UNITS, config_dir=tmp_path)


def test_seed_all_with_overwrite_rereads_the_files(store, names_dir):
    assert resolve(store, "weed", NAME_TYPE_SUBSTANCE) == "cannabis"
    (names_dir / "gpd-substance-names.toml").write_text(
        '[LocalName.cannabis]\nAltNames = ["weed", "ganja"]\n', encoding="utf-8"
    )

    seed_all(store)
    assert resolve(store, "ganja", NAME_TYPE_SUBSTANCE) == "ganja"

    seed_all(store, overwrite=True)
    assert resolve(store, "ganja", NAME_TYPE_SUBSTANCE) == "cannabis"
    assert resolve(store, "marijuana", NAME_TYPE_SUBSTANCE) == "marijuana"
