from __future__ import annotations

import logging
from typing import Callable

from db.store import Store
from services.errors import (
    ConvResultIsZeroError,
    NoDensitySubstanceError,
    NoNamesReturnedError,
    RetConvertUnitEmptyError,
    WrongAmountNamesError,
    WrongAmountUnitInputsError,
)
from services.names_service import NAME_TYPE_CONV_UNITS, get_all_alt_names

logger = logging.getLogger(__name__)

COMPONENT = "convert_units"

# g/cm3, at 16 C.
SUBSTANCE_DENSITIES = {
    "alcohol": 0.79283,
}


def convert_percent_to_pure(substance: str, amount: float, percent: float) -> float:
    return amount * percent / 100


def convert_milliliters_to_grams(substance: str, amount: float, percent: float) -> float:
    density = SUBSTANCE_DENSITIES.get((substance or "").lower())
    if not density:
        raise NoDensitySubstanceError(repr(substance), component=COMPONENT)
    return convert_percent_to_pure(substance, amount, percent) * density


# name -> (function, number of numeric inputs)
CONVERSION_FUNCTIONS: dict[str, tuple[Callable[..., float], int]] = {
    "Convert-Percent-To-Pure": (convert_percent_to_pure, 2),
    "Convert-Milliliters-To-Grams": (convert_milliliters_to_grams, 2),
}


def apply_conversion(function_name: str, substance: str, *unit_inputs: float) -> float:
    entry = CONVERSION_FUNCTIONS.get(function_name)
    if entry is None:
        raise RetConvertUnitEmptyError(f"unknown conversion {function_name!r}", component=COMPONENT)
    func, arity = entry
    if len(unit_inputs) != arity:
        raise WrongAmountUnitInputsError(f"got {len(unit_inputs)}, needed {arity}", component=COMPONENT)
    return func(substance, *unit_inputs)


def conversion_names(store: Store, substance: str) -> list[str]:
    """Conversion function and output unit registered for ``substance``.

    The source overlay wins, the global table is the fallback.
    """
    for source_specific in (True, False):
        try:
            return get_all_alt_names(store, substance, NAME_TYPE_CONV_UNITS, source_specific)
        except NoNamesReturnedError:
            continue
    return []


def convert_units(store: Store, substance: str, *unit_inputs: float) -> tuple[float, str]:
    names = conversion_names(store, substance)
    if len(names) != 2:
        raise WrongAmountNamesError(f"{len(names)} for {substance!r}, should be 2: {names}", component=COMPONENT)
    function_name, output_unit = names
    output = apply_conversion(function_name, substance, *unit_inputs)
    if output == 0:
        raise ConvResultIsZeroError(f"{function_name} for {substance!r} with {list(unit_inputs)}", component=COMPONENT)
    if not output_unit:
        raise RetConvertUnitEmptyError(repr(substance), component=COMPONENT)
    logger.debug("Converted %s %s with %s to %g %s", substance, list(unit_inputs), function_name, output, output_unit)
    return output, output_unit
