"""
Tests for the imputation engine: PENDING -> RUNNING -> COMPLETED/FAILED,
per-column statistics, fallback recording and result deletion.
"""

import pytest

from fluxqc.models.imputation_result import ImputationColumnStat, ImputationDetail, ImputationResult
from fluxqc.schemas.imputation import ExecuteImputationRequest
from fluxqc.services import imputation
from fluxqc.services.errors import (
    ColumnNotFoundError,
    InvalidStatusTransition,
    MethodUnavailableError,
    NotFoundError,
    ValidationError,
)
from fluxqc.services.imputation import ImputationEngine


GAPPY_CSV = """
TIMESTAMP,Ta,RH
2024-01-01 00:00,1,
2024-01-01 00:30,-9999,5
2024-01-01 01:00,3,
"""


def _request(dataset, version, method_id="MEAN", columns=("Ta",), **params):
    return ExecuteImputationRequest(
        dataset_id=dataset.id,
        version_id=version.id,
        method_id=method_id,
        target_columns=list(columns),
        params=params,
    )


# ============================================================================
# SUCCESSFUL RUNS
# ============================================================================

class TestExecute:
    def test_mean_fills_token_gap(self, db, make_dataset):
        dataset, version = make_dataset(GAPPY_CSV)
        summary = ImputationEngine(db).execute(_request(dataset, version))

        assert summary.status == "COMPLETED"
        assert (summary.total_missing, summary.imputed_count) == (1, 1)
        assert summary.imputation_rate == 1.0
        assert summary.applied_method == "MEAN"

        details, total = imputation.list_details(db, summary.result_id)
        assert total == 1
        (detail,) = details
        assert detail.row_index == 1
        assert detail.time_point == "2024-01-01 00:30"
        assert detail.original_value is None
        assert detail.imputed_value == 2.0
        # imputed exactly at the pre-fill mean -> confidence equals the MEAN weight
        assert detail.confidence == pytest.approx(0.6)
        assert detail.imputation_method == "MEAN"

    def test_partial_fill_rate(self, db, make_dataset):
        dataset, version = make_dataset(GAPPY_CSV)
        summary = ImputationEngine(db).execute(_request(dataset, version, "FORWARD_FILL", columns=["RH"]))

        (column,) = summary.column_results
        assert (column.missing_count, column.imputed_count) == (2, 1)
        assert column.imputation_rate == 0.5
        assert summary.imputation_rate == 0.5

    def test_column_stats(self, db, make_dataset):
        dataset, version = make_dataset(GAPPY_CSV)
        summary = ImputationEngine(db).execute(_request(dataset, version, "LINEAR"))

        (stat,) = imputation.list_column_stats(db, summary.result_id)
        assert stat.mean_before == 2.0
        assert stat.std_before == 1.0
        assert stat.mean_after == 2.0
        assert (stat.min_imputed, stat.max_imputed) == (2.0, 2.0)
        assert stat.avg_confidence == pytest.approx(0.8)

    def test_column_without_gaps(self, db, make_dataset):
        dataset, version = make_dataset("Ta,RH\n1,10\n,20\n3,30")
        summary = ImputationEngine(db).execute(_request(dataset, version, columns=["Ta", "RH"]))

        rh = next(s for s in imputation.list_column_stats(db, summary.result_id) if s.column_name == "RH")
        assert (rh.missing_count, rh.imputed_count, rh.imputation_rate) == (0, 0, 0.0)
        assert rh.mean_after == rh.mean_before == 20.0
        assert summary.imputation_rate == 1.0

    def test_external_method_falls_back_to_linear(self, db, make_dataset):
        dataset, version = make_dataset(GAPPY_CSV)
        summary = ImputationEngine(db).execute(_request(dataset, version, "SPLINE"))

        assert summary.method_id == "SPLINE"
        assert summary.applied_method == "LINEAR"
        details, _ = imputation.list_details(db, summary.result_id)
        assert [d.imputation_method for d in details] == ["LINEAR"]
        assert imputation.get_result_or_raise(db, summary.result_id).method_id == "SPLINE"

    def test_infinite_cells_treated_as_gaps(self, db, make_dataset):
        dataset, version = make_dataset("Ta,RH\n10,1\ninf,2\n,3\n25,4")
        summary = ImputationEngine(db).execute(_request(dataset, version))

        assert (summary.total_missing, summary.imputed_count) == (2, 2)
        details, _ = imputation.list_details(db, summary.result_id)
        assert [(d.row_index, d.imputed_value) for d in details] == [(1, 17.5), (2, 17.5)]
        (stat,) = imputation.list_column_stats(db, summary.result_id)
        assert stat.mean_before == stat.mean_after == 17.5

    def test_progress(self, db, make_dataset):
        dataset, version = make_dataset(GAPPY_CSV)
        events = []
        ImputationEngine(db).execute(_request(dataset, version, columns=["Ta", "RH"]), on_progress=events.append)

        assert [e.progress for e in events if e.stage == "imputing"] == [50, 80]
        assert (events[0].stage, events[0].progress) == ("preparing", 0)
        assert (events[-1].stage, events[-1].progress) == ("saving", 100)


# ============================================================================
# VALIDATION & FAILURES
# ============================================================================

class TestFailures:
    def test_empty_targets(self, db, ta_dataset):
        dataset, version = ta_dataset
        with pytest.raises(ValidationError):
            ImputationEngine(db).execute(_request(dataset, version, columns=[]))
        assert db.query(ImputationResult).count() == 0

    def test_unavailable_method(self, db, ta_dataset):
        dataset, version = ta_dataset
        with pytest.raises(MethodUnavailableError):
            ImputationEngine(db).execute(_request(dataset, version, "LSTM"))
        assert db.query(ImputationResult).count() == 0

    def test_bad_params(self, db, ta_dataset):
        dataset, version = ta_dataset
        with pytest.raises(ValidationError):
            ImputationEngine(db).execute(_request(dataset, version, "POLYNOMIAL", degree=0))

    def test_unknown_version(self, db, ta_dataset):
        dataset, _ = ta_dataset
        request = ExecuteImputationRequest(dataset_id=dataset.id, version_id=999,
                                           method_id="MEAN", target_columns=["Ta"])
        with pytest.raises(NotFoundError):
            ImputationEngine(db).execute(request)

    def test_missing_column_marks_failed(self, db, ta_dataset):
        dataset, version = ta_dataset
        with pytest.raises(ColumnNotFoundError):
            ImputationEngine(db).execute(_request(dataset, version, columns=["NEE"]))

        result = db.query(ImputationResult).one()
        assert result.status == "FAILED"
        assert "NEE" in result.error_message
        assert db.query(ImputationDetail).count() == 0

    def test_final_batch_commit_failure_marks_failed(self, db, make_dataset, monkeypatch):
        dataset, version = make_dataset(GAPPY_CSV)
        commit = db.commit

        def flaky():
            if any(isinstance(obj, ImputationColumnStat) for obj in db.new):
                db.flush()
                raise RuntimeError("disk full")
            commit()

        monkeypatch.setattr(db, "commit", flaky)

        with pytest.raises(RuntimeError, match="disk full"):
            ImputationEngine(db).execute(_request(dataset, version, columns=["Ta", "RH"]))

        result = db.query(ImputationResult).one()
        assert result.status == "FAILED"
        assert "disk full" in result.error_message
        assert result.imputed_count == 0
        assert db.query(ImputationDetail).count() == 0
        assert db.query(ImputationColumnStat).count() == 0

    def test_finished_result_cannot_rerun(self, db, make_dataset):
        dataset, version = make_dataset(GAPPY_CSV)
        engine = ImputationEngine(db)
        result = engine.prepare(_request(dataset, version))
        assert result.status == "PENDING"
        engine.run(result)

        with pytest.raises(InvalidStatusTransition):
            engine.run(result)
        db.refresh(result)
        assert result.status == "COMPLETED"


# ============================================================================
# QUERIES & DELETION
# ============================================================================

class TestResults:
    def test_delete_isolated(self, db, make_dataset):
        dataset, version = make_dataset(GAPPY_CSV)
        engine = ImputationEngine(db)
        first = engine.execute(_request(dataset, version))
        second = engine.execute(_request(dataset, version, "MEDIAN"))

        imputation.delete_result(db, first.result_id)

        with pytest.raises(NotFoundError):
            imputation.get_result_or_raise(db, first.result_id)
        assert imputation.list_details(db, second.result_id)[1] == 1
        assert [r.id for r in imputation.list_results(db, dataset.id)] == [second.result_id]

    def test_details_filtered_by_column(self, db, make_dataset):
        dataset, version = make_dataset(GAPPY_CSV)
        summary = ImputationEngine(db).execute(_request(dataset, version, "LINEAR", columns=["Ta", "RH"]))

        rh, total = imputation.list_details(db, summary.result_id, column_name="RH")
        assert total == 2
        assert [d.row_index for d in rh] == [0, 2]
