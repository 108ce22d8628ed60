"""
Validators for Brazilian fiscal identifiers and classification codes.

All validators are pure and total: they return a bool for any input and
never raise. Formatting helpers are the exception and raise ValueError on
malformed input.
"""

import re
from typing import List, Optional

_NON_DIGITS = re.compile(r"\D")

# CNPJ check-digit weights: 5,4,3,2,9,8,...,2 for the first digit, then
# 6,5,4,3,2,9,...,2 for the second (cycling 2..9 from the right).
_CNPJ_WEIGHTS_1 = (5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)
_CNPJ_WEIGHTS_2 = (6,) + _CNPJ_WEIGHTS_1

# CFOP groups: 1-3 entries (state, interstate, foreign), 5-7 exits.
INBOUND_CFOP_GROUPS = frozenset("123")
OUTBOUND_CFOP_GROUPS = frozenset("567")

ICMS_SITUATION_CODES = frozenset({
    "00", "10", "20", "30", "40", "41", "50", "51", "60", "70", "90",
})

CONTRIBUTION_SITUATION_CODES = frozenset(
    [f"{n:02d}" for n in range(1, 10)]
    + ["49"]
    + [f"{n:02d}" for n in range(50, 57)]
    + [f"{n:02d}" for n in range(60, 68)]
    + [f"{n:02d}" for n in range(70, 76)]
    + ["98", "99"]
)

# Simples Nacional operation codes (CSOSN)
SIMPLIFIED_REGIME_CODES = frozenset({
    "101", "102", "103", "201", "202", "203", "300", "400", "500", "900",
})

PRODUCT_ORIGIN_DIGITS = frozenset("012345678")

FEDERATIVE_UNITS = frozenset({
    "AC", "AL", "AM", "AP", "BA", "CE", "DF", "ES", "GO",
    "MA", "MG", "MS", "MT", "PA", "PB", "PE", "PI", "PR",
    "RJ", "RN", "RO", "RR", "RS", "SC", "SE", "SP", "TO",
})


def strip_non_digits(value: object) -> str:
    """Remove every non-digit character. Non-strings yield ''."""
    if not isinstance(value, str):
        return ""
    return _NON_DIGITS.sub("", value)


def _check_digit(digits: str, weights) -> int:
    remainder = sum(int(d) * w for d, w in zip(digits, weights)) % 11
    return 0 if remainder < 2 else 11 - remainder


def is_valid_tax_id(value: object) -> bool:
    """
    Validate a CNPJ.

    Punctuation is ignored. The stripped value must have 14 digits, must
    not be a single repeated digit, and both mod-11 check digits must match.

    Examples:
        >>> is_valid_tax_id("11.222.333/0001-81")
        True
        >>> is_valid_tax_id("11222333000182")
        False
    """
    digits = strip_non_digits(value)
    if len(digits) != 14:
        return False
    if len(set(digits)) == 1:
        return False

    first = _check_digit(digits[:12], _CNPJ_WEIGHTS_1)
    if int(digits[12]) != first:
        return False
    second = _check_digit(digits[:13], _CNPJ_WEIGHTS_2)
    return int(digits[13]) == second


def format_tax_id(value: str) -> str:
    """
    Format a CNPJ as XX.XXX.XXX/XXXX-XX.

    Raises:
        ValueError: If the value does not contain exactly 14 digits
    """
    digits = strip_non_digits(value)
    if len(digits) != 14:
        raise ValueError(f"CNPJ must have 14 digits, got {len(digits)}")
    return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"


def is_valid_operation_class_code(code: object) -> bool:
    """CFOP: four digits, first digit 1-3 (inbound) or 5-7 (outbound)."""
    if not isinstance(code, str):
        return False
    code = code.strip().replace(".", "")
    if len(code) != 4 or not code.isdigit():
        return False
    return code[0] in INBOUND_CFOP_GROUPS or code[0] in OUTBOUND_CFOP_GROUPS


def operation_direction(cfop: str) -> Optional[str]:
    """Return 'inbound' or 'outbound' for a valid CFOP, None otherwise."""
    if not is_valid_operation_class_code(cfop):
        return None
    first = cfop.strip()[0]
    return "inbound" if first in INBOUND_CFOP_GROUPS else "outbound"


def is_valid_situation_code(code: object) -> bool:
    """
    CST/CSOSN.

    Accepts a 2-digit ICMS or PIS/COFINS situation code, a 3-digit ICMS
    code made of an origin digit (0-8) and an ICMS situation code, or a
    3-digit Simples Nacional CSOSN.
    """
    if not isinstance(code, str):
        return False
    code = code.strip()
    if not code.isdigit():
        return False
    if len(code) == 2:
        return code in ICMS_SITUATION_CODES or code in CONTRIBUTION_SITUATION_CODES
    if len(code) == 3:
        if code in SIMPLIFIED_REGIME_CODES:
            return True
        return code[0] in PRODUCT_ORIGIN_DIGITS and code[1:] in ICMS_SITUATION_CODES
    return False


def is_valid_product_class_code(code: object) -> bool:
    """NCM: eight digits (dots allowed), not all zeros."""
    if not isinstance(code, str):
        return False
    digits = code.strip().replace(".", "")
    if len(digits) != 8 or not digits.isdigit():
        return False
    return digits != "00000000"


def is_valid_jurisdiction(uf: object) -> bool:
    """One of the 27 federative units (case-insensitive)."""
    if not isinstance(uf, str):
        return False
    return uf.strip().upper() in FEDERATIVE_UNITS


def line_code_issues(line) -> List[str]:
    """
    Describe malformed codes of a line item; empty when all are valid.

    CFOP is mandatory. NCM, CST and the UFs are checked only when present.
    """
    issues = []
    if not is_valid_operation_class_code(line.cfop):
        issues.append(f"CFOP inválido: {line.cfop!r}")
    if line.ncm and not is_valid_product_class_code(line.ncm):
        issues.append(f"NCM inválido: {line.ncm!r}")
    if line.cst and not is_valid_situation_code(line.cst):
        issues.append(f"CST inválido: {line.cst!r}")
    for uf in (line.jurisdiction, line.destination_jurisdiction):
        if uf and not is_valid_jurisdiction(uf):
            issues.append(f"UF inválida: {uf!r}")
    return issues
