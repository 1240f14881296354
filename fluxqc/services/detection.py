"""
Outlier detection engine.

A run resolves target columns (through the scope resolver for static
thresholds, or directly for statistical methods), records a RUNNING result,
scans the version table once and persists details, per-column stats and the
final COMPLETED state in a single transaction. Any failure after the result
exists rolls back, marks the result FAILED and re-raises.

A COMPLETED result can then be applied, producing a FILTERED child version
with the flagged cells blanked.
"""

import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from sqlalchemy.orm import Session

from fluxqc.config import settings
from fluxqc.models.column_setting import ColumnSetting
from fluxqc.models.dataset import Dataset, DatasetVersion
from fluxqc.models.detection_result import DetectionColumnStat, DetectionDetail, DetectionResult
from fluxqc.schemas.detection import ColumnDetectionResult, DetectionSummary
from fluxqc.services import status
from fluxqc.services.datasets import create_version, get_dataset_or_raise, get_version_or_raise
from fluxqc.services.detection_methods import (
    THRESHOLD_STATIC,
    FlaggedCell,
    classify,
    ensure_executable,
    get_method,
    resolve_params,
    statistical_bounds,
)
from fluxqc.services.errors import (
    ColumnNotFoundError,
    ConfigurationError,
    NotFoundError,
    QualityError,
    ValidationError,
)
from fluxqc.services.progress import (
    STAGE_DETECTING,
    STAGE_PREPARING,
    STAGE_SAVING,
    ProgressCallback,
    ProgressReporter,
)
from fluxqc.services.scope_resolver import ScopeResolver
from fluxqc.services.storage import storage_service
from fluxqc.services.table_reader import read_table

logger = logging.getLogger(__name__)


class DetectionEngine:
    def __init__(self, db: Session, detail_limit: Optional[int] = None,
                 resolver: Optional[ScopeResolver] = None):
        self.db = db
        self.detail_limit = settings.DETECTION_DETAIL_LIMIT if detail_limit is None else detail_limit
        self.resolver = resolver or ScopeResolver(db)

    # ─────────────────────────────────────────────────────────────────────
    # Planning
    # ─────────────────────────────────────────────────────────────────────

    def _active_columns(self, dataset_id: int) -> List[str]:
        rows = (
            self.db.query(ColumnSetting.column_name)
            .filter(
                ColumnSetting.dataset_id == dataset_id,
                ColumnSetting.is_active == True,  # noqa: E712
                ColumnSetting.is_del == False,  # noqa: E712
            )
            .order_by(ColumnSetting.column_index, ColumnSetting.id)
            .all()
        )
        return [name for (name,) in rows]

    def _threshold_targets(self, dataset: Dataset,
                           column_names: Optional[List[str]]) -> Dict[str, Tuple[Optional[float], Optional[float], str]]:
        names = column_names if column_names else self._active_columns(dataset.id)
        resolved = self.resolver.resolve_many(names, dataset.id, dataset.site_id)
        targets = {
            name: (r.min_threshold, r.max_threshold, r.source)
            for name, r in resolved.items()
            if r.is_usable
        }
        if not targets:
            raise ConfigurationError(
                f"No usable thresholds for dataset {dataset.id}; configure min/max bounds first"
            )
        return targets

    # ─────────────────────────────────────────────────────────────────────
    # Execution
    # ─────────────────────────────────────────────────────────────────────

    def execute(self, dataset_id: int, version_id: int, column_names: Optional[List[str]] = None,
                method_id: Optional[str] = None, params: Optional[Dict[str, Any]] = None,
                on_progress: Optional[ProgressCallback] = None) -> DetectionSummary:
        dataset = get_dataset_or_raise(self.db, dataset_id)
        version = get_version_or_raise(self.db, dataset_id, version_id)

        method_id = method_id or THRESHOLD_STATIC
        method = get_method(method_id)
        ensure_executable(method)
        merged_params = resolve_params(method_id, params)

        if method_id == THRESHOLD_STATIC:
            thresholds = self._threshold_targets(dataset, column_names)
            targets = list(thresholds)
        else:
            thresholds = None
            targets = list(column_names) if column_names else self._active_columns(dataset.id)
            if not targets:
                raise ConfigurationError(f"Dataset {dataset.id} has no active columns to check")

        result = DetectionResult(
            dataset_id=dataset.id,
            version_id=version.id,
            detection_method=method_id,
            detection_params={"columns": targets, "params": merged_params},
            status=status.RUNNING,
            executed_at=datetime.utcnow(),
        )
        self.db.add(result)
        self.db.commit()
        self.db.refresh(result)
        logger.info("Detection %s started: %s on dataset %s version %s (%d columns)",
                    result.id, method_id, dataset.id, version.id, len(targets))

        reporter = ProgressReporter(result.id, on_progress)
        try:
            return self._run(result, dataset, version, method_id, merged_params,
                             targets, thresholds, reporter)
        except Exception as e:
            self._fail(result.id, e)
            raise

    def _run(self, result: DetectionResult, dataset: Dataset, version: DatasetVersion,
             method_id: str, params: Dict[str, Any], targets: List[str],
             thresholds: Optional[Dict[str, tuple]], reporter: ProgressReporter) -> DetectionSummary:
        reporter.emit(STAGE_PREPARING, 0, "Reading data")
        table = read_table(version.file_path, dataset.missing_value_types, version_id=version.id)
        missing = table.missing_columns(targets)
        if missing:
            raise ColumnNotFoundError(missing)
        reporter.emit(STAGE_PREPARING, 10, "Data loaded")

        time_points = table.time_points(dataset.time_column)
        include_boundary = params.get("include_boundary", True)
        flagged: List[Tuple[str, FlaggedCell]] = []
        stats: List[DetectionColumnStat] = []

        for done, column in enumerate(targets, start=1):
            values = table.numeric(column)
            if thresholds is not None:
                lower, upper, source = thresholds[column]
            else:
                lower, upper = statistical_bounds(method_id, values, params)
                source = method_id
            cells = classify(values, lower, upper, include_boundary)
            flagged.extend((column, cell) for cell in cells)
            stats.append(DetectionColumnStat(
                result_id=result.id,
                column_name=column,
                outlier_count=len(cells),
                min_threshold=lower,
                max_threshold=upper,
                threshold_source=source,
            ))
            reporter.emit(
                STAGE_DETECTING, 10 + 70 * done / len(targets), f"Checked {column}",
                current_column=column, processed_columns=done, total_columns=len(targets),
            )

        reporter.emit(STAGE_SAVING, 80, "Saving results")
        outlier_count = len(flagged)
        kept = flagged if self.detail_limit <= 0 else flagged[:self.detail_limit]
        if len(kept) < outlier_count:
            logger.warning("Detection %s: storing %d of %d outlier details",
                           result.id, len(kept), outlier_count)

        self.db.add_all(
            DetectionDetail(
                result_id=result.id,
                column_name=column,
                row_index=cell.row_index,
                time_point=time_points[cell.row_index] if time_points else None,
                original_value=cell.value,
                outlier_type=cell.outlier_type,
                threshold_value=cell.threshold_value,
            )
            for column, cell in kept
        )
        self.db.add_all(stats)

        checked_cells = table.total_rows * len(targets)
        result.total_rows = table.total_rows
        result.columns_checked = len(targets)
        result.outlier_count = outlier_count
        result.outlier_rate = outlier_count / checked_cells if checked_cells else 0.0
        result.stored_detail_count = len(kept)
        result.details_truncated = len(kept) < outlier_count
        status.advance_status(result, status.COMPLETED)
        self.db.commit()
        reporter.emit(STAGE_SAVING, 100, "Detection complete")
        logger.info("Detection %s completed: %d outliers in %d rows",
                    result.id, outlier_count, table.total_rows)

        return DetectionSummary(
            result_id=result.id,
            status=result.status,
            detection_method=method_id,
            total_rows=result.total_rows,
            columns_checked=result.columns_checked,
            outlier_count=outlier_count,
            outlier_rate=result.outlier_rate,
            stored_detail_count=result.stored_detail_count,
            details_truncated=result.details_truncated,
            column_results=[
                ColumnDetectionResult(
                    column_name=s.column_name,
                    outlier_count=s.outlier_count,
                    min_threshold=s.min_threshold,
                    max_threshold=s.max_threshold,
                    threshold_source=s.threshold_source,
                )
                for s in stats
            ],
        )

    def _fail(self, result_id: int, error: Exception) -> None:
        logger.exception("Detection %s failed", result_id)
        self.db.rollback()
        result = self.db.get(DetectionResult, result_id)
        message = error.message if isinstance(error, QualityError) else str(error) or type(error).__name__
        status.advance_status(result, status.FAILED, message)
        self.db.commit()


# ─────────────────────────────────────────────────────────────────────────────
# Result queries
# ─────────────────────────────────────────────────────────────────────────────

def get_result_or_raise(db: Session, result_id: int) -> DetectionResult:
    result = (
        db.query(DetectionResult)
        .filter(DetectionResult.id == result_id, DetectionResult.is_del == False)  # noqa: E712
        .first()
    )
    if not result:
        raise NotFoundError("DetectionResult", result_id)
    return result


def list_results(db: Session, dataset_id: int) -> List[DetectionResult]:
    get_dataset_or_raise(db, dataset_id)
    return (
        db.query(DetectionResult)
        .filter(DetectionResult.dataset_id == dataset_id, DetectionResult.is_del == False)  # noqa: E712
        .order_by(DetectionResult.executed_at.desc(), DetectionResult.id.desc())
        .all()
    )


def list_details(db: Session, result_id: int, column_name: Optional[str] = None,
                 limit: int = 100, offset: int = 0) -> Tuple[List[DetectionDetail], int]:
    get_result_or_raise(db, result_id)
    query = db.query(DetectionDetail).filter(
        DetectionDetail.result_id == result_id,
        DetectionDetail.is_del == False,  # noqa: E712
    )
    if column_name is not None:
        query = query.filter(DetectionDetail.column_name == column_name)
    total = query.count()
    details = (
        query.order_by(DetectionDetail.row_index, DetectionDetail.id)
        .offset(offset)
        .limit(limit)
        .all()
    )
    return details, total


def list_column_stats(db: Session, result_id: int) -> List[DetectionColumnStat]:
    get_result_or_raise(db, result_id)
    return (
        db.query(DetectionColumnStat)
        .filter(DetectionColumnStat.result_id == result_id, DetectionColumnStat.is_del == False)  # noqa: E712
        .order_by(DetectionColumnStat.id)
        .all()
    )


def delete_result(db: Session, result_id: int) -> None:
    """Soft-delete a result together with its details and column stats."""
    result = get_result_or_raise(db, result_id)
    now = datetime.utcnow()
    try:
        for model in (DetectionDetail, DetectionColumnStat):
            db.query(model).filter(model.result_id == result_id).update(
                {model.is_del: True, model.deleted_at: now}, synchronize_session=False
            )
        result.is_del = True
        result.deleted_at = now
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Deleted detection result %s", result_id)


# ─────────────────────────────────────────────────────────────────────────────
# Applying a result
# ─────────────────────────────────────────────────────────────────────────────

def _filtered_path(source_path: str, result_id: int) -> str:
    stem, _ = os.path.splitext(source_path)
    stamp = datetime.utcnow().strftime("%Y%m%d%H%M%S%f")
    return f"{stem}_filtered_{result_id}_{stamp}.csv"


def apply_filtering(db: Session, result_id: int) -> DatasetVersion:
    """
    Write a FILTERED child version of the scanned version with every flagged
    cell blanked, and link it from the result.

    Cells are re-classified against each column's recorded bounds instead of
    being taken from the stored details, which may be capped. Missing-value
    tokens are written out as empty cells. The result stays COMPLETED; applying
    it again produces another version and moves the link to the newest one.
    """
    result = get_result_or_raise(db, result_id)
    if result.status != status.COMPLETED:
        raise ValidationError(
            f"Only COMPLETED detection results can be applied; result {result_id} is {result.status}"
        )
    dataset = get_dataset_or_raise(db, result.dataset_id)
    source = get_version_or_raise(db, result.dataset_id, result.version_id)
    stats = list_column_stats(db, result_id)
    params = (result.detection_params or {}).get("params") or {}
    include_boundary = params.get("include_boundary", True)

    table = read_table(source.file_path, dataset.missing_value_types, version_id=source.id)
    missing = table.missing_columns([s.column_name for s in stats])
    if missing:
        raise ColumnNotFoundError(missing)

    filtered = table.rows.copy()
    blanked = 0
    for stat in stats:
        cells = classify(table.numeric(stat.column_name), stat.min_threshold, stat.max_threshold,
                         include_boundary)
        filtered.loc[[cell.row_index for cell in cells], stat.column_name] = np.nan
        blanked += len(cells)

    target = _filtered_path(source.file_path, result.id)
    storage_service.write_bytes(target, filtered.to_csv(index=False, na_rep="").encode("utf-8"))

    version = create_version(db, dataset.id, "FILTERED", target, parent_version_id=source.id,
                             remark=f"Applied outlier filtering (result #{result.id})")
    result.generated_version_id = version.id
    db.commit()
    logger.info("Detection %s applied: %d cells blanked into version %s (%s)",
                result.id, blanked, version.id, target)
    return version
