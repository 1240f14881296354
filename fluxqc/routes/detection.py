from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fluxqc.database import get_db
from fluxqc.schemas.common import Envelope, ok
from fluxqc.schemas.datasets import VersionOut
from fluxqc.schemas.detection import (
    DetectionColumnStatOut,
    DetectionDetailsPage,
    DetectionMethodOut,
    DetectionResultOut,
    DetectionSummary,
    ExecuteDetectionRequest,
)
from fluxqc.services import detection
from fluxqc.services.detection_methods import list_methods

router = APIRouter(prefix="/detection", tags=["detection"])


@router.get("/methods", response_model=Envelope[List[DetectionMethodOut]])
def detection_methods():
    return ok([DetectionMethodOut.model_validate(m) for m in list_methods()])


@router.post("/execute", response_model=Envelope[DetectionSummary])
def execute_detection(payload: ExecuteDetectionRequest, db: Session = Depends(get_db)):
    summary = detection.DetectionEngine(db).execute(
        dataset_id=payload.dataset_id,
        version_id=payload.version_id,
        column_names=payload.column_names,
        method_id=payload.method_id,
        params=payload.params,
    )
    return ok(summary)


# ─────────────────────────────────────────────────────────────────────────────
# Results
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/datasets/{dataset_id}/results", response_model=Envelope[List[DetectionResultOut]])
def list_results(dataset_id: int, db: Session = Depends(get_db)):
    return ok(detection.list_results(db, dataset_id))


@router.get("/results/{result_id}/details", response_model=Envelope[DetectionDetailsPage])
def list_details(
    result_id: int,
    column_name: Optional[str] = None,
    limit: int = Query(100, ge=1, le=10000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    details, total = detection.list_details(db, result_id, column_name, limit, offset)
    return ok({"details": details, "total": total})


@router.get("/results/{result_id}/column-stats", response_model=Envelope[List[DetectionColumnStatOut]])
def list_column_stats(result_id: int, db: Session = Depends(get_db)):
    return ok(detection.list_column_stats(db, result_id))


@router.post("/results/{result_id}/apply", response_model=Envelope[VersionOut])
def apply_result(result_id: int, db: Session = Depends(get_db)):
    return ok(detection.apply_filtering(db, result_id))


@router.delete("/results/{result_id}", response_model=Envelope)
def delete_result(result_id: int, db: Session = Depends(get_db)):
    detection.delete_result(db, result_id)
    return ok()
