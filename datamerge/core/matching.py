"""
Core Matching Logic
------------------
This module classifies the records of two datasets into duplicate pairs,
records unique to dataset A and records unique to dataset B.

Matching is exact on a single key column per dataset, after trimming
surrounding whitespace and ignoring case. Each A record consumes at most one
B record (greedy, first match, one-to-one), so duplicate key values inside a
dataset never collapse into each other.
"""

import logging
from collections import deque
from typing import Any, Deque, Dict, List, NamedTuple, Optional

from datamerge.models.data_models import ColumnMapping, Dataset, Record
from datamerge.utils.text_processing import normalize_key

logger = logging.getLogger(__name__)


class DuplicatePair(NamedTuple):
    """One record from each dataset whose key values match."""
    record_a: Record
    record_b: Record


class MatchResult(NamedTuple):
    pairs: List[DuplicatePair]
    unique_a: List[Record]
    unique_b: List[Record]


def get_column_value(record: Record, column: str) -> Any:
    """Return the value of a column, treating an absent column as null."""
    if not record or not column:
        return None
    return record.get(column)


def is_value_match(value_a: Any, value_b: Any) -> bool:
    """
    Check whether two key values match.

    A null value only matches another null value. Everything else is compared
    as text with surrounding whitespace removed and case folded.

    Args:
        value_a: Key value from dataset A
        value_b: Key value from dataset B

    Returns:
        bool: True if the values match
    """
    return normalize_key(value_a) == normalize_key(value_b)


def match_datasets(dataset_a: Dataset, dataset_b: Dataset, mapping: ColumnMapping) -> MatchResult:
    """
    Partition two datasets into duplicate pairs and unique records.

    Every A record, in order, takes the first still-unclaimed B record with a
    matching key. B records are indexed by normalized key with one FIFO queue
    per key, which gives the same pairing as scanning the remaining B records
    front to back for each A record.

    Args:
        dataset_a: First dataset
        dataset_b: Second dataset
        mapping: The key column of each dataset

    Returns:
        MatchResult: Duplicate pairs plus unique A and unique B records, all in original order
    """
    index: Dict[Optional[str], Deque[int]] = {}
    for position, record_b in enumerate(dataset_b.records):
        key = normalize_key(get_column_value(record_b, mapping.column_b))
        index.setdefault(key, deque()).append(position)

    pairs: List[DuplicatePair] = []
    unique_a: List[Record] = []
    claimed = set()

    for record_a in dataset_a.records:
        key = normalize_key(get_column_value(record_a, mapping.column_a))
        candidates = index.get(key)
        if candidates:
            position = candidates.popleft()
            claimed.add(position)
            pairs.append(DuplicatePair(record_a, dataset_b.records[position]))
        else:
            unique_a.append(record_a)

    unique_b = [
        record_b for position, record_b in enumerate(dataset_b.records)
        if position not in claimed
    ]

    logger.info(
        f"Matched {len(pairs)} duplicate pairs on '{mapping.column_a}' / '{mapping.column_b}': "
        f"{len(unique_a)} unique in A, {len(unique_b)} unique in B"
    )
    return MatchResult(pairs, unique_a, unique_b)
