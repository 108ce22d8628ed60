"""
ICMS rate tables by federative unit.

Internal rates are the general ("modal") rates of each UF. Interstate
rates follow Senate Resolution 22/1989: 7% from the South and Southeast
(except Espírito Santo) to the North, Northeast, Center-West and Espírito
Santo, 12% otherwise; Resolution 13/2012 sets 4% for imported goods.
"""

from decimal import Decimal
from typing import Dict

INTERNAL_RATES: Dict[str, Decimal] = {
    "AC": Decimal("19"),
    "AL": Decimal("19"),
    "AM": Decimal("20"),
    "AP": Decimal("18"),
    "BA": Decimal("20.5"),
    "CE": Decimal("20"),
    "DF": Decimal("20"),
    "ES": Decimal("17"),
    "GO": Decimal("19"),
    "MA": Decimal("22"),
    "MG": Decimal("18"),
    "MS": Decimal("17"),
    "MT": Decimal("17"),
    "PA": Decimal("19"),
    "PB": Decimal("20"),
    "PE": Decimal("20.5"),
    "PI": Decimal("21"),
    "PR": Decimal("19.5"),
    "RJ": Decimal("20"),
    "RN": Decimal("18"),
    "RO": Decimal("19.5"),
    "RR": Decimal("20"),
    "RS": Decimal("17"),
    "SC": Decimal("17"),
    "SE": Decimal("19"),
    "SP": Decimal("18"),
    "TO": Decimal("20"),
}

SOUTH_SOUTHEAST = frozenset({"MG", "PR", "RJ", "RS", "SC", "SP"})

INTERSTATE_REDUCED = Decimal("7")
INTERSTATE_STANDARD = Decimal("12")
INTERSTATE_IMPORTED = Decimal("4")

# First CST digit for goods of foreign origin (imported directly or content > 40%)
IMPORTED_ORIGIN_DIGITS = frozenset("1238")

# Tax part of a 3-digit ICMS CST; keeps CSOSN codes such as 102 out
_ICMS_CST_SUFFIXES = frozenset({"00", "10", "20", "30", "40", "41", "50", "51", "60", "70", "90"})


def _normalize(uf: str) -> str:
    return (uf or "").strip().upper()


def internal_rate(uf: str) -> Decimal:
    """
    Internal ICMS rate of a UF.

    Raises:
        ValueError: If the UF is unknown
    """
    key = _normalize(uf)
    if key not in INTERNAL_RATES:
        raise ValueError(f"Unknown federative unit: {uf!r}")
    return INTERNAL_RATES[key]


def interstate_rate(origin: str, destination: str, imported: bool = False) -> Decimal:
    """
    Rate applied by the origin UF on an interstate operation.

    Same-state operations get the internal rate.
    """
    origin, destination = _normalize(origin), _normalize(destination)
    internal_rate(origin)
    internal_rate(destination)
    if origin == destination:
        return internal_rate(origin)
    if imported:
        return INTERSTATE_IMPORTED
    if origin in SOUTH_SOUTHEAST and destination not in SOUTH_SOUTHEAST:
        return INTERSTATE_REDUCED
    return INTERSTATE_STANDARD


def is_imported_origin(cst: str) -> bool:
    """True for a 3-digit ICMS CST whose origin digit denotes foreign goods."""
    cst = (cst or "").strip()
    return len(cst) == 3 and cst[0] in IMPORTED_ORIGIN_DIGITS and cst[1:] in _ICMS_CST_SUFFIXES
