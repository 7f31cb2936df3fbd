"""
Phone number normalization helpers.
"""

import re
from typing import Dict, Optional

NUMBER_LENGTH = 11

# Keypad letters, so vanity numbers like 0800DISCOIN dial correctly
KEYPAD = {
    **dict.fromkeys("abc", "2"),
    **dict.fromkeys("def", "3"),
    **dict.fromkeys("ghi", "4"),
    **dict.fromkeys("jkl", "5"),
    **dict.fromkeys("mno", "6"),
    **dict.fromkeys("pqrs", "7"),
    **dict.fromkeys("tuv", "8"),
    **dict.fromkeys("wxyz", "9"),
}

_NON_DIALABLE = re.compile(r"[^\d*]")


def parse_number(raw: str) -> str:
    """
    Normalize user input into a dialable number.

    Letters are mapped to their keypad digit and everything that is not a
    digit or ``*`` is dropped.
    """
    translated = "".join(KEYPAD.get(ch, ch) for ch in raw.lower())
    return _NON_DIALABLE.sub("", translated)


def normalize_target(raw: str, aliases: Optional[Dict[str, str]] = None) -> str:
    """Parse a dialed number and resolve it through the alias table."""
    number = parse_number(raw)
    if aliases and number in aliases:
        number = aliases[number]
    return number


def is_valid_number(number: str) -> bool:
    return len(number) == NUMBER_LENGTH and number.isdigit()
