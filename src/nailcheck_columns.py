"""Spreadsheet column label <-> zero-based index conversion (A=0, Z=25, AA=26, ...)."""

from __future__ import annotations

from nailcheck_errors import InvalidColumnLabel


def letter_to_index(letters: str) -> int:
    """
    Decode a bijective base-26 column label into a zero-based index.

    There is no upper bound on label length. Empty labels and anything other
    than uppercase Latin letters raise InvalidColumnLabel.
    """
    if not isinstance(letters, str) or not letters:
        raise InvalidColumnLabel(f"Invalid column label: {letters!r}")
    number = 0
    for ch in letters:
        if not ("A" <= ch <= "Z"):
            raise InvalidColumnLabel(f"Invalid column label: {letters!r}")
        number = number * 26 + (ord(ch) - 64)
    return number - 1


def index_to_letter(index: int) -> str:
    if isinstance(index, bool) or not isinstance(index, int) or index < 0:
        raise InvalidColumnLabel(f"Invalid column index: {index!r}")
    number = index + 1
    letters = []
    while number:
        number, rem = divmod(number - 1, 26)
        letters.append(chr(65 + rem))
    return "".join(reversed(letters))
