"""
Numeric OCR repair for percentage fields (format D{1,3}.DD).

Steps:
1. Map glyphs commonly confused with digits to the digit, collapse '..'
2. Drop everything outside [0-9.]
3. Decimal point repair: shrink an over-long integer part (> 3 digits) or
   fraction (> 2 digits) by collapsing doubled digits, then truncate

Validation is separate (``validate_percentage``) and is done by the caller
before commit.
"""

import re
from decimal import Decimal, InvalidOperation

from ..errors import ValidationError

DIGIT_SUBSTITUTIONS = {
    '1': "Iil|!]",
    '2': "eZc¢",
    '4': "Aqy",
    '5': "aSsH",
    '6': "bG",
    '8': "B",
    '9': "Qg",
    '0': "OoD",
}

_DIGIT_TABLE = str.maketrans({
    glyph: digit
    for digit, glyphs in DIGIT_SUBSTITUTIONS.items()
    for glyph in glyphs
})

_PERCENTAGE_FORMAT = re.compile(r'^\d{1,3}\.\d{2}$')
_DOUBLED_DIGIT = re.compile(r'(\d)\1')

MAX_INTEGER_DIGITS = 3
MAX_FRACTION_DIGITS = 2
MAX_PERCENTAGE = Decimal("200.00")


def substitute_digits(text: str) -> str:
    text = text.translate(_DIGIT_TABLE)
    return re.sub(r'\.{2,}', '.', text)


def strip_non_numeric(text: str) -> str:
    return re.sub(r'[^0-9.]', '', text)


def collapse_repeated_digits(digits: str) -> str:
    """A digit repeated immediately is reduced by one repetition ('1123' -> '123', '111' -> '11')."""
    return _DOUBLED_DIGIT.sub(r'\1', digits)


def repair_decimal(text: str) -> str:
    """Fix integer/fraction lengths around the first decimal point."""
    if '.' in text:
        integer, fraction = text.split('.', 1)
    else:
        integer, fraction = text, None

    if len(integer) > MAX_INTEGER_DIGITS:
        integer = collapse_repeated_digits(integer)
    if fraction is not None and len(fraction) > MAX_FRACTION_DIGITS:
        fraction = collapse_repeated_digits(fraction)

    # Last resort: keep the trailing integer digits and the leading fraction digits
    if len(integer) > MAX_INTEGER_DIGITS:
        integer = integer[-MAX_INTEGER_DIGITS:]
    if fraction is not None and len(fraction) > MAX_FRACTION_DIGITS:
        fraction = fraction[:MAX_FRACTION_DIGITS]

    return integer if fraction is None else f"{integer}.{fraction}"


def correct_numeric(text: str) -> str:
    """
    Repair a raw OCR reading of a percentage.

    Example:
        >>> correct_numeric("l23.45")
        '123.45'
    """
    return repair_decimal(strip_non_numeric(substitute_digits(text or "")))


def validate_percentage(text: str, field: str = "value") -> Decimal:
    """
    Parse a corrected percentage.

    Args:
        text: Corrected text, must match D{1,3}.DD
        field: Field name used in the error

    Returns:
        Decimal in [0.00, 200.00] with two fractional digits

    Raises:
        ValidationError: If the format or range is wrong
    """
    if not _PERCENTAGE_FORMAT.match(text or ""):
        raise ValidationError({field: f"'{text}' is not in the form 0.00-200.00"})
    try:
        value = Decimal(text)
    except InvalidOperation as e:
        raise ValidationError({field: f"'{text}' is not a number"}) from e
    if not Decimal("0.00") <= value <= MAX_PERCENTAGE:
        raise ValidationError({field: f"{value} is outside 0.00-200.00"})
    return value
