"""
Integer literal parsing shared by the lexer, the configuration layer and
the command line (-D and -b values).
"""

import string


# Largest value an integer literal may have
MAX_U64 = (1 << 64) - 1

# Radix prefixes (lowercase second character) -> radix
RADIX_PREFIXES = {
    "x": 16,
    "o": 8,
    "b": 2,
    "d": 10,
}

RADIX_NAMES = {
    16: "hexadecimal",
    10: "decimal",
    8: "octal",
    2: "binary",
}


def split_radix(text: str) -> tuple[str, int]:
    """Split '0x1F' into ('1F', 16); text without a prefix is decimal."""
    if len(text) >= 2 and text[0] == "0" and text[1].lower() in RADIX_PREFIXES:
        return text[2:], RADIX_PREFIXES[text[1].lower()]
    return text, 10


def parse_integer(digits: str, radix: int) -> int:
    """
    Convert a digit string in the given radix, ignoring '_' separators.

    Args:
        digits: Digit characters without any radix prefix
        radix: 2, 8, 10 or 16

    Returns:
        The unsigned value

    Raises:
        ValueError: On an empty digit string, a digit invalid for the
                    radix, or a value that does not fit in 64 bits
    """
    cleaned = digits.replace("_", "")
    if not cleaned:
        raise ValueError(f"expected {RADIX_NAMES[radix]} digits")

    valid = string.hexdigits if radix == 16 else string.digits[:radix]
    for char in cleaned:
        if char not in valid:
            raise ValueError(
                f"invalid digit '{char}' in {RADIX_NAMES[radix]} literal"
            )

    value = int(cleaned, radix)
    if value > MAX_U64:
        raise ValueError("integer literal does not fit in 64 bits")
    return value


def parse_number(text: str) -> int:
    """
    Parse a complete literal such as '0x8000_0000' or '42'.

    Raises:
        ValueError: If the text is not a valid literal
    """
    digits, radix = split_radix(text.strip())
    return parse_integer(digits, radix)
