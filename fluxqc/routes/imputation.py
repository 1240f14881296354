from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fluxqc.database import get_db
from fluxqc.schemas.common import Envelope, ok
from fluxqc.schemas.imputation import (
    ExecuteImputationRequest,
    ImputationColumnStatOut,
    ImputationDetailsPage,
    ImputationMethodOut,
    ImputationResultOut,
    QueuedImputation,
)
from fluxqc.services import imputation
from fluxqc.services.imputation_methods import get_all_methods, get_available_methods, get_methods_by_category
from fluxqc.tasks.imputation import run_imputation_job

router = APIRouter(prefix="/imputation", tags=["imputation"])


@router.get("/methods", response_model=Envelope[List[ImputationMethodOut]])
def imputation_methods(category: Optional[str] = None, only_available: bool = False):
    methods = get_methods_by_category(category) if category else get_all_methods()
    if only_available:
        available = {m.id for m in get_available_methods()}
        methods = [m for m in methods if m.id in available]
    return ok([ImputationMethodOut.model_validate(m) for m in methods])


@router.post("/execute", response_model=Envelope)
def execute_imputation(
    payload: ExecuteImputationRequest,
    background: bool = False,
    db: Session = Depends(get_db),
):
    """Run in-process, or with ``background=true`` queue on Celery and return the PENDING id."""
    engine = imputation.ImputationEngine(db)
    if not background:
        return ok(engine.execute(payload).model_dump())

    result = engine.prepare(payload)
    run_imputation_job.delay(result.id)
    return ok(QueuedImputation(result_id=result.id, status=result.status).model_dump())


# ─────────────────────────────────────────────────────────────────────────────
# Results
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/results/{result_id}", response_model=Envelope[ImputationResultOut])
def get_result(result_id: int, db: Session = Depends(get_db)):
    return ok(imputation.get_result_or_raise(db, result_id))


@router.get("/datasets/{dataset_id}/results", response_model=Envelope[List[ImputationResultOut]])
def list_results(
    dataset_id: int,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    return ok(imputation.list_results(db, dataset_id, limit, offset))


@router.get("/results/{result_id}/details", response_model=Envelope[ImputationDetailsPage])
def list_details(
    result_id: int,
    column_name: Optional[str] = None,
    limit: int = Query(1000, ge=1, le=10000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    details, total = imputation.list_details(db, result_id, column_name, limit, offset)
    return ok({"details": details, "total": total})


@router.get("/results/{result_id}/column-stats", response_model=Envelope[List[ImputationColumnStatOut]])
def list_column_stats(result_id: int, db: Session = Depends(get_db)):
    return ok(imputation.list_column_stats(db, result_id))


@router.delete("/results/{result_id}", response_model=Envelope)
def delete_result(result_id: int, db: Session = Depends(get_db)):
    imputation.delete_result(db, result_id)
    return ok()
