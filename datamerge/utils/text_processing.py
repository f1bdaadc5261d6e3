"""
Text Processing Utilities
------------------------
This module contains functions for turning cell values into comparable text and
numbers, which is a critical step in both the matching and the merging process.
"""

import math
import re
from datetime import date, datetime, time
from typing import Any, Optional

import numpy as np
import pandas as pd

# Leading number of a string, the same prefix a spreadsheet would read as a number
_NUMBER_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|[+-]?Infinity)")


def is_missing(value: Any) -> bool:
    """
    Check whether a cell value counts as null.

    None, NaN and NaT (as produced by pandas for empty cells) are all missing.
    """
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def to_text(value: Any) -> str:
    """
    Convert a cell value to the text a user sees in the spreadsheet.

    Integral floats lose their fractional part ("1.0" is shown as "1"), booleans
    are lower case and dates use ISO format.

    Args:
        value: Any scalar cell value

    Returns:
        str: The display text of the value
    """
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def normalize_key(value: Any) -> Optional[str]:
    """
    Normalize a match-key value.

    Only surrounding whitespace and letter case are ignored; punctuation and
    inner whitespace are significant.

    Args:
        value: The key cell value

    Returns:
        Optional[str]: None for a missing value, the normalized text otherwise
    """
    if is_missing(value):
        return None
    return to_text(value).strip().casefold()


def parse_number(value: Any) -> Optional[float]:
    """
    Parse a cell value as a floating point number.

    Numbers pass through; text is read up to the end of its leading number
    ("12 kg" reads as 12). Booleans, dates and text without a leading number
    do not parse.

    Returns:
        Optional[float]: The parsed number, or None when it does not parse
    """
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return None if math.isnan(number) else number
    match = _NUMBER_PREFIX.match(to_text(value))
    if not match:
        return None
    return float(match.group(1).replace("Infinity", "inf"))


def round2(number: float) -> float:
    """Round half up to 2 decimal places."""
    scaled = number * 100 + 0.5
    # Too large to carry a fractional part, or not finite at all
    if not math.isfinite(scaled):
        return number
    return math.floor(scaled) / 100
