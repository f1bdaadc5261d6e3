"""
Core Merging Logic
-----------------
This module combines the two records of every duplicate pair into one merged record.

Two strategies are available behind the same interface:

- Column operations: start from the dataset A record and overwrite each
  configured column with the result of its operator.
- Merge all: start from the dataset A record and bring in every column of the
  dataset B record, keeping conflicting B values under a "file2_" prefix.
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Sequence

from datamerge.core.matching import DuplicatePair
from datamerge.models.data_models import MergeOperation, MergeOperator, Record
from datamerge.utils.text_processing import is_missing, parse_number, round2, to_text

logger = logging.getLogger(__name__)

CONFLICT_PREFIX = "file2_"
CONCAT_SEPARATOR = " | "


def _divide(a: float, b: float) -> float:
    # Division by zero leaves the numerator unchanged
    return a / b if b != 0 else a


NUMERIC_FUNCTIONS: Dict[MergeOperator, Callable[[float, float], float]] = {
    MergeOperator.SUM: lambda a, b: a + b,
    MergeOperator.SUBTRACT: lambda a, b: a - b,
    MergeOperator.MULTIPLY: lambda a, b: a * b,
    MergeOperator.DIVIDE: _divide,
    MergeOperator.AVG: lambda a, b: (a + b) / 2,
    MergeOperator.MIN: min,
    MergeOperator.MAX: max,
}


def perform_numeric_operation(value_a: Any, value_b: Any, operator: MergeOperator) -> Any:
    """
    Apply a numeric operator to two cell values.

    Both values are parsed as floats. If either does not parse, or the result
    is not a finite number, the first value is returned unchanged so that one
    bad cell only degrades that cell.

    Args:
        value_a: Value from dataset A
        value_b: Value from dataset B
        operator: One of the numeric operators

    Returns:
        Any: The result rounded to 2 decimals, or value_a if there is no finite result
    """
    num_a = parse_number(value_a)
    num_b = parse_number(value_b)
    if num_a is None or num_b is None:
        logger.warning(
            f"Cannot perform {operator.value} on non-numeric values: {value_a!r}, {value_b!r}"
        )
        return value_a
    result = NUMERIC_FUNCTIONS[operator](num_a, num_b)
    if not math.isfinite(result):
        logger.warning(
            f"{operator.value} of {value_a!r} and {value_b!r} is not a finite number"
        )
        return value_a
    return round2(result)


def _numeric(operator: MergeOperator) -> Callable[[Any, Any], Any]:
    return lambda a, b: perform_numeric_operation(a, b, operator)


# Every operator has exactly one entry; checked below at import time.
OPERATOR_DISPATCH: Dict[MergeOperator, Callable[[Any, Any], Any]] = {
    MergeOperator.TAKE_NEW: lambda a, b: b,
    MergeOperator.TAKE_OLD: lambda a, b: a,
    MergeOperator.SUM: _numeric(MergeOperator.SUM),
    MergeOperator.SUBTRACT: _numeric(MergeOperator.SUBTRACT),
    MergeOperator.MULTIPLY: _numeric(MergeOperator.MULTIPLY),
    MergeOperator.DIVIDE: _numeric(MergeOperator.DIVIDE),
    MergeOperator.AVG: _numeric(MergeOperator.AVG),
    MergeOperator.MIN: _numeric(MergeOperator.MIN),
    MergeOperator.MAX: _numeric(MergeOperator.MAX),
    MergeOperator.CONCATENATE: lambda a, b: f"{to_text(a)}{CONCAT_SEPARATOR}{to_text(b)}",
    # Whole-record operator; on a single cell it keeps the original value
    MergeOperator.MERGE_ALL: lambda a, b: a,
}

_undispatched = set(MergeOperator) - set(OPERATOR_DISPATCH)
if _undispatched:
    raise RuntimeError(f"Merge operators without an implementation: {sorted(op.value for op in _undispatched)}")


def apply_operator(value_a: Any, value_b: Any, operator: MergeOperator) -> Any:
    """
    Combine two cell values with a merge operator.

    Nulls are resolved before the operator runs, the same way for every
    operator: a null value never replaces a present one, so a null first value
    yields the second value and a null second value yields the first. This
    makes TAKE_NEW fall back to the old value and TAKE_OLD to the new one.

    Args:
        value_a: Value from dataset A
        value_b: Value from dataset B
        operator: The merge operator to apply

    Returns:
        Any: The merged cell value, None when both values are null
    """
    if is_missing(value_a):
        return None if is_missing(value_b) else value_b
    if is_missing(value_b):
        return value_a
    return OPERATOR_DISPATCH[operator](value_a, value_b)


class MergeStrategy(ABC):
    """Turns one duplicate pair into one merged record."""

    @abstractmethod
    def merge_pair(self, pair: DuplicatePair) -> Record:
        ...

    def merge(self, pairs: Sequence[DuplicatePair]) -> List[Record]:
        return [self.merge_pair(pair) for pair in pairs]


class ColumnOperationStrategy(MergeStrategy):
    """
    Start from the A record and overwrite every configured column.
    The column set of the A record is preserved.
    """

    def __init__(self, operations: Sequence[MergeOperation]):
        self.operations = [op for op in operations if op.operator is not MergeOperator.MERGE_ALL]

    def merge_pair(self, pair: DuplicatePair) -> Record:
        merged = dict(pair.record_a)
        for operation in self.operations:
            merged[operation.column] = apply_operator(
                pair.record_a.get(operation.column),
                pair.record_b.get(operation.column),
                operation.operator,
            )
        return merged


class MergeAllStrategy(MergeStrategy):
    """
    Start from the A record and add every column of the B record without
    overwriting anything: equal values are kept once, conflicting B values are
    stored under a prefixed column, new columns are added as they are.
    """

    def __init__(self, prefix: str = CONFLICT_PREFIX):
        self.prefix = prefix

    def _conflict_column(self, merged: Record, column: str) -> str:
        name = f"{self.prefix}{column}"
        suffix = 2
        while name in merged:
            name = f"{self.prefix}{column}_{suffix}"
            suffix += 1
        return name

    def merge_pair(self, pair: DuplicatePair) -> Record:
        merged = dict(pair.record_a)
        for column, value_b in pair.record_b.items():
            if column not in merged:
                merged[column] = value_b
            elif merged[column] != value_b:
                merged[self._conflict_column(merged, column)] = value_b
        return merged


def select_strategy(operations: Sequence[MergeOperation]) -> MergeStrategy:
    """Pick merge-all when any MERGE_ALL operation is configured, column operations otherwise."""
    if any(op.operator is MergeOperator.MERGE_ALL for op in operations):
        return MergeAllStrategy()
    return ColumnOperationStrategy(operations)


def merge_duplicates(pairs: Sequence[DuplicatePair], operations: Sequence[MergeOperation]) -> List[Record]:
    """
    Produce one merged record per duplicate pair.

    Args:
        pairs: Duplicate pairs from the match engine
        operations: The configured merge operations, in order

    Returns:
        List[Record]: Merged records in the order of the pairs
    """
    strategy = select_strategy(operations)
    logger.info(f"Merging {len(pairs)} duplicate pairs with {strategy.__class__.__name__}")
    return strategy.merge(pairs)
