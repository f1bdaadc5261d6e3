"""
Tests for processing input validation and result cross-checks.
"""

import pytest

from datamerge.core.exceptions import InputError
from datamerge.core.validation import validate_processing_inputs, validate_result
from datamerge.models.data_models import (
    ColumnMapping,
    Dataset,
    MergeOperation,
    MergeOperator,
    MergeOptions,
    ProcessedResult,
    ProcessingStats,
)

SUM_AMOUNT = MergeOptions(operations=[MergeOperation(column="Amount", operator=MergeOperator.SUM)])
CODE_MAPPING = ColumnMapping(column_a="Code", column_b="Code")


class TestValidateProcessingInputs:
    def test_valid_inputs(self, dataset_a, dataset_b):
        validate_processing_inputs(dataset_a, dataset_b, CODE_MAPPING, SUM_AMOUNT)

    def test_missing_dataset(self, dataset_a):
        with pytest.raises(InputError, match="File 2 is empty or invalid"):
            validate_processing_inputs(dataset_a, None, CODE_MAPPING, SUM_AMOUNT)

    def test_empty_dataset(self, dataset_b):
        empty = Dataset(columns=["Code"], records=[])
        with pytest.raises(InputError, match="File 1 is empty or invalid"):
            validate_processing_inputs(empty, dataset_b, CODE_MAPPING, SUM_AMOUNT)

    def test_too_many_rows(self, dataset_a, dataset_b):
        with pytest.raises(InputError, match="too many rows") as exc_info:
            validate_processing_inputs(dataset_a, dataset_b, CODE_MAPPING, SUM_AMOUNT, max_rows=3)
        assert exc_info.value.status_code == 400

    def test_incomplete_mapping(self, dataset_a, dataset_b):
        with pytest.raises(InputError, match="Column mapping is incomplete"):
            validate_processing_inputs(
                dataset_a, dataset_b, ColumnMapping(column_a="Code", column_b=""), SUM_AMOUNT
            )

    def test_unknown_key_column(self, dataset_a, dataset_b):
        with pytest.raises(InputError, match="Column 'City' not found in File 2"):
            validate_processing_inputs(
                dataset_a, dataset_b, ColumnMapping(column_a="Code", column_b="City"), SUM_AMOUNT
            )

    def test_no_operations(self, dataset_a, dataset_b):
        with pytest.raises(InputError, match="No merge operations specified"):
            validate_processing_inputs(dataset_a, dataset_b, CODE_MAPPING, MergeOptions())

    def test_operation_column_in_either_file(self, dataset_a, dataset_b):
        options = MergeOptions(operations=[
            MergeOperation(column="City", operator=MergeOperator.TAKE_OLD),
            MergeOperation(column="Country", operator=MergeOperator.TAKE_NEW),
        ])
        validate_processing_inputs(dataset_a, dataset_b, CODE_MAPPING, options)

    def test_unknown_operation_column(self, dataset_a, dataset_b):
        options = MergeOptions(operations=[MergeOperation(column="Phone", operator=MergeOperator.TAKE_NEW)])
        with pytest.raises(InputError, match="not found in either file"):
            validate_processing_inputs(dataset_a, dataset_b, CODE_MAPPING, options)

    def test_merge_all_skips_column_check(self, dataset_a, dataset_b):
        options = MergeOptions(operations=[
            MergeOperation(column="Phone", operator=MergeOperator.TAKE_NEW),
            MergeOperation(operator=MergeOperator.MERGE_ALL),
        ])
        validate_processing_inputs(dataset_a, dataset_b, CODE_MAPPING, options)


def make_result(duplicates=1, unique_a=1, unique_b=1, merged=1, **stats_overrides):
    stats = dict(
        total_a=duplicates + unique_a,
        total_b=duplicates + unique_b,
        duplicate_count=duplicates,
        unique_a_count=unique_a,
        unique_b_count=unique_b,
        merged_count=merged,
    )
    stats.update(stats_overrides)
    return ProcessedResult(
        duplicates=[{"k": i} for i in range(duplicates)],
        unique_a=[{"k": i} for i in range(unique_a)],
        unique_b=[{"k": i} for i in range(unique_b)],
        merged=[{"k": i} for i in range(merged)],
        stats=ProcessingStats(**stats),
    )


class TestValidateResult:
    def test_consistent_result(self):
        report = validate_result(make_result(duplicates=2, unique_a=3, unique_b=0, merged=2))
        assert report.valid
        assert report.errors == []

    def test_missing_result(self):
        report = validate_result(None)
        assert not report.valid
        assert report.errors == ["Results data is missing"]

    def test_total_mismatch(self):
        report = validate_result(make_result(total_a=5))
        assert not report.valid
        assert report.errors == ["File 1 total count mismatch"]

    def test_every_failure_is_reported(self):
        report = validate_result(make_result(total_a=9, total_b=9, unique_b_count=4))
        assert not report.valid
        assert "Unique File 2 count mismatch" in report.errors
        assert "File 1 total count mismatch" in report.errors
        assert "File 2 total count mismatch" in report.errors
        assert len(report.errors) == 3

    def test_merged_count_differs_from_duplicates(self):
        report = validate_result(make_result(duplicates=2, merged=1))
        assert not report.valid
        assert report.errors == ["Merged count does not equal duplicate count"]

    def test_invalid_section(self):
        result = make_result()
        broken = ProcessedResult.model_construct(**{**dict(result), "merged": None})
        report = validate_result(broken)
        assert "Merged data is invalid" in report.errors
