"""
Duplicate Processing
-------------------
Runs one complete processing pass over two datasets: input validation,
matching, merging and statistics.
"""

import logging
import time
from datetime import datetime

from datamerge.core.exceptions import DataMergeError, ProcessingError
from datamerge.core.matching import match_datasets
from datamerge.core.merging import merge_duplicates
from datamerge.core.validation import MAX_DATASET_ROWS, validate_processing_inputs
from datamerge.models.data_models import (
    ColumnMapping,
    Dataset,
    MergeOptions,
    ProcessedResult,
    ProcessingStats,
)

logger = logging.getLogger(__name__)


def process_duplicates(
    dataset_a: Dataset,
    dataset_b: Dataset,
    mapping: ColumnMapping,
    options: MergeOptions,
    max_rows: int = MAX_DATASET_ROWS,
) -> ProcessedResult:
    """
    Find duplicates and unique records between two datasets and merge the duplicates.

    Args:
        dataset_a: First dataset
        dataset_b: Second dataset
        mapping: Key column of each dataset
        options: Merge operations to apply to duplicate pairs
        max_rows: Maximum number of records per dataset

    Returns:
        ProcessedResult: The four result sets with their statistics

    Raises:
        InputError: If the inputs are incomplete or inconsistent
        ProcessingError: If matching or merging fails unexpectedly
    """
    validate_processing_inputs(dataset_a, dataset_b, mapping, options, max_rows=max_rows)

    start_time = time.time()
    try:
        pairs, unique_a, unique_b = match_datasets(dataset_a, dataset_b, mapping)
        merged = merge_duplicates(pairs, options.operations)
    except DataMergeError:
        raise
    except Exception as e:
        raise ProcessingError(f"Duplicate processing failed: {e}") from e

    stats = ProcessingStats(
        total_a=dataset_a.row_count,
        total_b=dataset_b.row_count,
        duplicate_count=len(pairs),
        unique_a_count=len(unique_a),
        unique_b_count=len(unique_b),
        merged_count=len(merged),
    )

    logger.info(
        f"Processed {stats.total_a} + {stats.total_b} records in {time.time() - start_time:.2f}s: "
        f"{stats.duplicate_count} duplicates, {stats.merged_count} merged"
    )

    return ProcessedResult(
        duplicates=[pair.record_a for pair in pairs],
        unique_a=unique_a,
        unique_b=unique_b,
        merged=merged,
        stats=stats,
        processed_at=datetime.now(),
    )
