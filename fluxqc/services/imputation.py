"""
Missing-value imputation engine.

``prepare`` validates a request and records a PENDING result; ``run`` takes
that result through RUNNING to COMPLETED or FAILED, so the run half can be
handed to a Celery worker. ``execute`` does both in-process.
"""

import logging
import time
from datetime import datetime
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd
from sqlalchemy.orm import Session

from fluxqc.models.imputation_result import ImputationColumnStat, ImputationDetail, ImputationResult
from fluxqc.schemas.imputation import ColumnImputationResult, ExecuteImputationRequest, ImputationSummary
from fluxqc.services import status
from fluxqc.services.datasets import get_dataset_or_raise, get_version_or_raise
from fluxqc.services.errors import ColumnNotFoundError, EmptyDataError, NotFoundError, QualityError, ValidationError
from fluxqc.services.imputation_methods import (
    applied_method_id,
    check_params,
    confidence,
    fill_column,
    get_method,
    method_weight,
)
from fluxqc.services.progress import (
    STAGE_IMPUTING,
    STAGE_PREPARING,
    STAGE_SAVING,
    ProgressCallback,
    ProgressReporter,
)
from fluxqc.services.table_reader import ParsedTable, read_table

logger = logging.getLogger(__name__)


def _stats(values: pd.Series) -> Tuple[Optional[float], Optional[float]]:
    """Mean and population std, or (None, None) with no values."""
    if values.empty:
        return None, None
    return float(values.mean()), float(values.std(ddof=0))


class ImputationEngine:
    def __init__(self, db: Session):
        self.db = db

    def prepare(self, request: ExecuteImputationRequest) -> ImputationResult:
        if not request.target_columns:
            raise ValidationError("target_columns must not be empty")
        method = get_method(request.method_id)
        applied_method_id(method)
        params = check_params(method.id, request.params)

        get_dataset_or_raise(self.db, request.dataset_id)
        get_version_or_raise(self.db, request.dataset_id, request.version_id)

        result = ImputationResult(
            dataset_id=request.dataset_id,
            version_id=request.version_id,
            method_id=method.id,
            target_columns=list(request.target_columns),
            method_params=params,
            status=status.PENDING,
        )
        self.db.add(result)
        self.db.commit()
        self.db.refresh(result)
        return result

    def execute(self, request: ExecuteImputationRequest,
                on_progress: Optional[ProgressCallback] = None) -> ImputationSummary:
        return self.run(self.prepare(request), on_progress)

    def run(self, result: ImputationResult,
            on_progress: Optional[ProgressCallback] = None) -> ImputationSummary:
        reporter = ProgressReporter(result.id, on_progress)
        started = time.perf_counter()
        status.advance_status(result, status.RUNNING)
        result.executed_at = datetime.utcnow()
        self.db.commit()
        try:
            logger.info("Imputation %s started: %s on %s", result.id, result.method_id, result.target_columns)
            return self._run(result, reporter, started)
        except Exception as e:
            self._fail(result.id, e)
            raise

    def _load(self, result: ImputationResult) -> Tuple[ParsedTable, list]:
        dataset = get_dataset_or_raise(self.db, result.dataset_id)
        version = get_version_or_raise(self.db, result.dataset_id, result.version_id)
        table = read_table(version.file_path, dataset.missing_value_types, version_id=version.id)
        if table.total_rows == 0:
            raise EmptyDataError(f"Version {version.id} has no data rows")
        missing = table.missing_columns(result.target_columns)
        if missing:
            raise ColumnNotFoundError(missing)
        return table, table.time_points(dataset.time_column)

    def _run(self, result: ImputationResult, reporter: ProgressReporter, started: float) -> ImputationSummary:
        reporter.emit(STAGE_PREPARING, 0, "Reading data")
        table, time_points = self._load(result)
        reporter.emit(STAGE_PREPARING, 10, "Data loaded")

        method = get_method(result.method_id)
        used = applied_method_id(method)
        if used != method.id:
            logger.warning("Imputation %s: %s needs an external runtime, filling with %s",
                           result.id, method.id, used)
        weight = method_weight(used)
        params = result.method_params or {}

        columns: List[str] = result.target_columns
        details: List[ImputationDetail] = []
        stats: List[ImputationColumnStat] = []
        for done, column in enumerate(columns, start=1):
            details_before = len(details)
            stats.append(self._impute_column(result.id, table, column, used, params, weight,
                                             time_points, details))
            logger.debug("Imputation %s: %s filled %d cells", result.id, column, len(details) - details_before)
            reporter.emit(
                STAGE_IMPUTING, 20 + 60 * done / len(columns), f"Imputed {column}",
                current_column=column, processed_columns=done, total_columns=len(columns),
            )

        reporter.emit(STAGE_SAVING, 80, "Saving results")
        self.db.add_all(details)
        self.db.add_all(stats)

        total_missing = sum(s.missing_count for s in stats)
        imputed = sum(s.imputed_count for s in stats)
        result.total_missing = total_missing
        result.imputed_count = imputed
        result.imputation_rate = imputed / total_missing if total_missing else 0.0
        result.execution_time_ms = int((time.perf_counter() - started) * 1000)
        status.advance_status(result, status.COMPLETED)
        self.db.commit()
        reporter.emit(STAGE_SAVING, 100, "Imputation complete")
        logger.info("Imputation %s completed: %d of %d missing values filled",
                    result.id, imputed, total_missing)

        return ImputationSummary(
            result_id=result.id,
            status=result.status,
            method_id=result.method_id,
            applied_method=used,
            total_missing=total_missing,
            imputed_count=imputed,
            imputation_rate=result.imputation_rate,
            execution_time_ms=result.execution_time_ms,
            column_results=[
                ColumnImputationResult(
                    column_name=s.column_name,
                    missing_count=s.missing_count,
                    imputed_count=s.imputed_count,
                    imputation_rate=s.imputation_rate,
                )
                for s in stats
            ],
        )

    def _impute_column(self, result_id: int, table: ParsedTable, column: str, method_id: str,
                       params: dict, weight: float, time_points: Optional[list],
                       details: List[ImputationDetail]) -> ImputationColumnStat:
        series = table.numeric(column)
        gaps = series.isna()
        valid = series[~gaps]
        mean_before, std_before = _stats(valid)

        stat = ImputationColumnStat(
            result_id=result_id,
            column_name=column,
            missing_count=int(gaps.sum()),
            imputed_count=0,
            imputation_rate=0.0,
            mean_before=mean_before,
            std_before=std_before,
            mean_after=mean_before,
            std_after=std_before,
        )
        if not gaps.any():
            return stat

        filled = fill_column(method_id, series, params)
        imputed = filled[gaps & filled.notna()]
        if imputed.empty:
            return stat

        scores = []
        for idx, value in imputed.items():
            score = confidence(float(value), mean_before, std_before, weight)
            scores.append(score)
            details.append(ImputationDetail(
                result_id=result_id,
                column_name=column,
                row_index=int(idx),
                time_point=time_points[idx] if time_points else None,
                original_value=None,
                imputed_value=float(value),
                confidence=score,
                imputation_method=method_id,
            ))

        mean_after, std_after = _stats(filled.dropna())
        stat.imputed_count = len(imputed)
        stat.imputation_rate = len(imputed) / stat.missing_count
        stat.mean_after = mean_after
        stat.std_after = std_after
        stat.min_imputed = float(imputed.min())
        stat.max_imputed = float(imputed.max())
        stat.avg_confidence = float(np.mean(scores))
        return stat

    def _fail(self, result_id: int, error: Exception) -> None:
        logger.exception("Imputation %s failed", result_id)
        self.db.rollback()
        result = self.db.get(ImputationResult, result_id)
        message = error.message if isinstance(error, QualityError) else str(error) or type(error).__name__
        status.advance_status(result, status.FAILED, message)
        self.db.commit()


# ─────────────────────────────────────────────────────────────────────────────
# Result queries
# ─────────────────────────────────────────────────────────────────────────────

def get_result_or_raise(db: Session, result_id: int) -> ImputationResult:
    result = (
        db.query(ImputationResult)
        .filter(ImputationResult.id == result_id, ImputationResult.is_del == False)  # noqa: E712
        .first()
    )
    if not result:
        raise NotFoundError("ImputationResult", result_id)
    return result


def list_results(db: Session, dataset_id: int, limit: int = 50, offset: int = 0) -> List[ImputationResult]:
    get_dataset_or_raise(db, dataset_id)
    return (
        db.query(ImputationResult)
        .filter(ImputationResult.dataset_id == dataset_id, ImputationResult.is_del == False)  # noqa: E712
        .order_by(ImputationResult.executed_at.desc(), ImputationResult.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def list_details(db: Session, result_id: int, column_name: Optional[str] = None,
                 limit: int = 1000, offset: int = 0) -> Tuple[List[ImputationDetail], int]:
    get_result_or_raise(db, result_id)
    query = db.query(ImputationDetail).filter(
        ImputationDetail.result_id == result_id,
        ImputationDetail.is_del == False,  # noqa: E712
    )
    if column_name is not None:
        query = query.filter(ImputationDetail.column_name == column_name)
    total = query.count()
    details = (
        query.order_by(ImputationDetail.id)
        .offset(offset)
        .limit(limit)
        .all()
    )
    return details, total


def list_column_stats(db: Session, result_id: int) -> List[ImputationColumnStat]:
    get_result_or_raise(db, result_id)
    return (
        db.query(ImputationColumnStat)
        .filter(ImputationColumnStat.result_id == result_id, ImputationColumnStat.is_del == False)  # noqa: E712
        .order_by(ImputationColumnStat.id)
        .all()
    )


def delete_result(db: Session, result_id: int) -> None:
    """Soft-delete a result together with its details and column stats."""
    result = get_result_or_raise(db, result_id)
    now = datetime.utcnow()
    try:
        for model in (ImputationDetail, ImputationColumnStat):
            db.query(model).filter(model.result_id == result_id).update(
                {model.is_del: True, model.deleted_at: now}, synchronize_session=False
            )
        result.is_del = True
        result.deleted_at = now
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Deleted imputation result %s", result_id)
