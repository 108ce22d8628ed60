"""
Formula catalog for rule calculations.

A formula is a pure function of the working item returning a Decimal. What
the value means depends on the calculation's result kind:

- base: the new calculation base (an amount)
- rate / substitution_base / levy / protection_levy: a rate in percent
- credit / differential: an amount

Unknown keys evaluate to zero and are logged, so a mistyped or not yet
implemented formula does not abort a batch. Exceptions raised by a known
formula propagate and fail only the item being assessed.
"""

import logging
from decimal import Decimal
from typing import Callable, Dict, List

from calculator.decimal_math import ZERO, money, non_negative, percent, to_decimal
from models.line_item import AssessedItem
from rules.icms_rates import internal_rate, interstate_rate, is_imported_origin

logger = logging.getLogger(__name__)

Formula = Callable[[AssessedItem], Decimal]

CIAP_INSTALMENTS = Decimal("48")


class FormulaCatalog:
    """Registry mapping formula keys to functions."""

    def __init__(self):
        self._formulas: Dict[str, Formula] = {}

    def register(self, key: str, func: Formula) -> None:
        if key in self._formulas:
            logger.debug(f"Replacing formula '{key}'")
        self._formulas[key] = func

    def formula(self, key: str):
        """Decorator form of register()."""
        def decorator(func: Formula) -> Formula:
            self.register(key, func)
            return func
        return decorator

    def evaluate(self, key: str, item: AssessedItem) -> Decimal:
        func = self._formulas.get(key)
        if func is None:
            logger.warning(f"Unknown formula '{key}' for item {item.line.item_id}; using 0")
            return ZERO
        return to_decimal(func(item))

    def keys(self) -> List[str]:
        return sorted(self._formulas)

    def __contains__(self, key: object) -> bool:
        return key in self._formulas

    def __len__(self) -> int:
        return len(self._formulas)


def _fixed_rate(value: str) -> Formula:
    rate = Decimal(value)
    return lambda item: rate


def _reduced_base(kept_percent: int) -> Formula:
    # Reduction applies to the operation amount net of discounts, so it
    # does not compound when two reductions fire on the same item.
    return lambda item: percent(item.line.net_amount, kept_percent)


def _granted_credit(credit_percent: int) -> Formula:
    return lambda item: percent(item.tax_due, credit_percent)


def _destination(item: AssessedItem) -> str:
    return item.line.destination_jurisdiction or item.line.jurisdiction


def build_default_catalog() -> FormulaCatalog:
    """Catalog with the built-in ICMS formulas."""
    catalog = FormulaCatalog()

    for value in ("4", "7", "12", "17", "18", "20"):
        catalog.register(f"aliquota_icms_{value}", _fixed_rate(value))
    catalog.register("aliquota_zero", _fixed_rate("0"))

    for kept in (30, 40, 50, 60, 70):
        catalog.register(f"base_reduzida_{kept}", _reduced_base(kept))

    for credit in (3, 5):
        catalog.register(f"credito_outorgado_{credit}", _granted_credit(credit))

    catalog.register("st_18", _fixed_rate("18"))
    catalog.register("protege_2", _fixed_rate("2"))
    catalog.register("protege_15", _fixed_rate("15"))
    catalog.register("difal_4", lambda item: percent(item.base, 4))

    @catalog.formula("aliquota_interna_destino")
    def destination_internal_rate(item: AssessedItem) -> Decimal:
        return internal_rate(_destination(item))

    @catalog.formula("aliquota_interestadual")
    def interstate(item: AssessedItem) -> Decimal:
        return interstate_rate(
            item.line.jurisdiction,
            _destination(item),
            imported=is_imported_origin(item.line.cst),
        )

    @catalog.formula("difal_destino")
    def destination_differential(item: AssessedItem) -> Decimal:
        """Base times (destination internal rate - interstate rate), never negative."""
        spread = internal_rate(_destination(item)) - interstate(item)
        return non_negative(percent(item.base, spread))

    @catalog.formula("ciap_1_48")
    def fixed_asset_instalment(item: AssessedItem) -> Decimal:
        """Monthly 1/48 instalment of the ICMS paid on a fixed asset."""
        return money(item.line.declared_tax / CIAP_INSTALMENTS)

    return catalog


default_catalog = build_default_catalog()
