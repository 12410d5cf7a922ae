"""Chapter and verse number parsing utilities.

Chapter and verse numbers are stored either as integers or as strings with
a trailing letter (e.g. "12a"). Every place that orders verses goes through
verse_sort_key so numeric and lettered values interleave correctly.
"""

import re
from typing import Any, Tuple, Union

from grantha_library.exceptions import ValidationError

VerseNumber = Union[int, str]

_NUMBER_PATTERN = re.compile(r'^\s*(\d+)\s*([^\d\s]*)\s*$')


def normalize_verse_number(value: Any, field_name: str = 'verseNumber') -> VerseNumber:
    """Normalizes a chapter or verse number from user input.

    Plain integers (or numeric strings) become ints; values with a letter
    suffix are kept as trimmed strings.

    Args:
        value: Raw value from a payload or document.
        field_name: Field name used in error messages.

    Returns:
        An int, or a string like "12a".

    Raises:
        ValidationError: If value is empty, negative, or not a number.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"Invalid {field_name}: {value!r}")
    if isinstance(value, int):
        return _validate_non_negative(value, field_name)
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"Invalid {field_name}: {value!r}")
        return _validate_non_negative(int(value), field_name)
    return _normalize_string_number(str(value), field_name)


def _validate_non_negative(value: int, field_name: str) -> int:
    """Rejects negative numbers."""
    if value < 0:
        raise ValidationError(f"Invalid {field_name}: {value!r}")
    return value


def _normalize_string_number(value: str, field_name: str) -> VerseNumber:
    """Converts numeric strings to ints, keeps suffixed strings."""
    text = value.strip()
    if not text:
        raise ValidationError(f"{field_name} cannot be empty")
    match = _NUMBER_PATTERN.match(text)
    if match and not match.group(2):
        return int(match.group(1))
    return text


def verse_sort_key(value: Any) -> Tuple[int, int, str]:
    """Returns a sort key decomposing a value into (number, suffix).

    Values without a leading integer sort after all numbered values and
    are ordered by their text.

    Args:
        value: Chapter or verse number (int or string).

    Returns:
        Tuple usable as a sort key.
    """
    text = str(value).strip() if value is not None else ''
    match = _NUMBER_PATTERN.match(text)
    if match:
        return (0, int(match.group(1)), match.group(2).lower())
    return (1, 0, text.lower())


def verse_position_key(verse: Any) -> Tuple[Tuple[int, int, str], Tuple[int, int, str]]:
    """Returns the (chapter, verse) sort key for a Verse-like object."""
    return (
        verse_sort_key(verse.chapter_number),
        verse_sort_key(verse.verse_number),
    )
