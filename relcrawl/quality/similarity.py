"""String and list similarity heuristics used to correlate crawled records."""
from __future__ import annotations

from typing import Hashable, Iterable, Optional

_PHONETIC_DIGITS = {
    **dict.fromkeys("BFPV", "1"),
    **dict.fromkeys("CGJKQSXZ", "2"),
    **dict.fromkeys("DT", "3"),
    "L": "4",
    **dict.fromkeys("MN", "5"),
    "R": "6",
}
_CODE_LENGTH = 4
EMPTY_CODE = "ZERO"


def phonetic_code(value: str) -> str:
    """Return the four character phonetic signature of ``value``.

    The first character is kept when alphabetic (``'0'`` otherwise), followed
    by the digit of every later letter that differs from the digit before it.
    Vowels and ``H``, ``W``, ``Y`` map to ``'0'`` and are never emitted. The
    result is padded with ``'0'`` or truncated to four characters. Empty input
    yields ``"ZERO"``.
    """
    upper = value.upper()
    if not upper:
        return EMPTY_CODE
    digits = [_PHONETIC_DIGITS.get(char, "0") for char in upper]
    first = upper[0]
    code = [first if first.isalpha() else "0"]
    for previous, digit in zip(digits, digits[1:]):
        if digit != previous and digit != "0":
            code.append(digit)
    return "".join(code).ljust(_CODE_LENGTH, "0")[:_CODE_LENGTH]


def longest_common_substring(first: str, second: str) -> str:
    """Return the first longest substring of ``first`` also found in ``second``."""
    longest = ""
    for start in range(len(first)):
        for end in range(start + len(longest) + 1, len(first) + 1):
            section = first[start:end]
            if section not in second:
                break
            longest = section
    return longest


def string_similarity_ratio(first: str, second: str) -> float:
    """Residual ratio left after stripping common substrings from both strings.

    The longest common substring is removed (every occurrence, from both
    strings) until nothing is shared. The result is the leftover length over
    the combined length, halved, so identical strings score 0.0 and strings
    with no common character score 0.5.
    """
    total = len(first) + len(second)
    if total == 0:
        return 0.0
    left, right = first, second
    while True:
        common = longest_common_substring(left, right)
        if not common:
            break
        left = left.replace(common, "")
        right = right.replace(common, "")
    return (len(left) + len(right)) / total / 2.0


def set_similarity_ratio(
    first: Optional[Iterable[Hashable]],
    second: Optional[Iterable[Hashable]],
) -> float:
    """Share of distinct ``second`` items already present in ``first``.

    Hits are counted while folding the distinct items of ``second`` into the
    set built from ``first``; the ratio is hits over the final set size.
    """
    if first is None or second is None:
        return 0.0
    seen = set(first)
    hits = 0
    for item in dict.fromkeys(second):
        if item in seen:
            hits += 1
        else:
            seen.add(item)
    if not seen:
        return 0.0
    return hits / len(seen)


def relation_key(first_id: int, second_id: int) -> str:
    """Key identifying the relation between two users, larger id first."""
    high, low = (first_id, second_id) if first_id >= second_id else (second_id, first_id)
    return f"{high}_{low}"


def unique_characters(value: str) -> str:
    return "".join(dict.fromkeys(value))


def format_wait(seconds: int) -> str:
    """Render a wait duration as ``"M minutes and S seconds"``."""
    minutes, rest = divmod(max(int(seconds), 0), 60)
    return f"{minutes} minutes and {rest} seconds"
