from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fluxqc.database import get_db
from fluxqc.schemas.common import Envelope, ok
from fluxqc.schemas.thresholds import (
    ApplyTemplateRequest,
    ApplyTemplateResponse,
    BatchUpdateResponse,
    ColumnThresholdBatchItem,
    ColumnThresholdOut,
    ColumnThresholdUpdate,
    CreatedResponse,
    DetectionConfigCreate,
    DetectionConfigOut,
    DetectionConfigUpdate,
    ResolvedThreshold,
    ScopeType,
    TemplateEntry,
)
from fluxqc.services import detection_configs, thresholds
from fluxqc.services.datasets import get_dataset_or_raise
from fluxqc.services.scope_resolver import ScopeResolver

router = APIRouter(prefix="/thresholds", tags=["thresholds"])


# ─────────────────────────────────────────────────────────────────────────────
# Column thresholds (DATASET scope)
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/datasets/{dataset_id}", response_model=Envelope[List[ColumnThresholdOut]])
def list_column_thresholds(
    dataset_id: int,
    column_name: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return ok(thresholds.list_column_thresholds(db, dataset_id, column_name))


@router.patch("/columns/{column_id}", response_model=Envelope[ColumnThresholdOut])
def update_column_threshold(
    column_id: int,
    payload: ColumnThresholdUpdate,
    db: Session = Depends(get_db),
):
    return ok(thresholds.update_column_threshold(db, column_id, payload))


@router.post("/batch", response_model=Envelope[BatchUpdateResponse])
def batch_update_column_thresholds(
    payload: List[ColumnThresholdBatchItem],
    db: Session = Depends(get_db),
):
    count = thresholds.batch_update_column_thresholds(db, payload)
    return ok(BatchUpdateResponse(updated_count=count))


# ─────────────────────────────────────────────────────────────────────────────
# Templates
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/templates", response_model=Envelope[dict[str, dict[str, TemplateEntry]]])
def list_templates():
    return ok(thresholds.get_templates())


@router.post("/datasets/{dataset_id}/apply-template", response_model=Envelope[ApplyTemplateResponse])
def apply_template(
    dataset_id: int,
    payload: ApplyTemplateRequest,
    db: Session = Depends(get_db),
):
    applied = thresholds.apply_template(db, dataset_id, payload.template_name, payload.template)
    return ok(ApplyTemplateResponse(applied_count=applied))


# ─────────────────────────────────────────────────────────────────────────────
# Resolution
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/resolve", response_model=Envelope[ResolvedThreshold])
def resolve_threshold(
    column_name: str,
    dataset_id: int,
    site_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    if site_id is None:
        site_id = get_dataset_or_raise(db, dataset_id).site_id
    return ok(ScopeResolver(db).resolve(column_name, dataset_id, site_id))


# ─────────────────────────────────────────────────────────────────────────────
# Detection configs (APP / SITE / DATASET)
# ─────────────────────────────────────────────────────────────────────────────

@router.get("/configs", response_model=Envelope[List[DetectionConfigOut]])
def list_configs(
    scope_type: Optional[ScopeType] = None,
    scope_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    return ok(detection_configs.list_configs(db, scope_type, scope_id))


@router.post("/configs", response_model=Envelope[CreatedResponse])
def create_config(payload: DetectionConfigCreate, db: Session = Depends(get_db)):
    config = detection_configs.create_config(db, payload)
    return ok(CreatedResponse(id=config.id))


@router.patch("/configs/{config_id}", response_model=Envelope[DetectionConfigOut])
def update_config(
    config_id: int,
    payload: DetectionConfigUpdate,
    db: Session = Depends(get_db),
):
    return ok(detection_configs.update_config(db, config_id, payload))


@router.delete("/configs/{config_id}", response_model=Envelope)
def delete_config(config_id: int, db: Session = Depends(get_db)):
    detection_configs.delete_config(db, config_id)
    return ok()
