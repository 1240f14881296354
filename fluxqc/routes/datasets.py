from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fluxqc.database import get_db
from fluxqc.schemas.common import Envelope, ok
from fluxqc.schemas.datasets import DatasetCreate, DatasetOut, SiteCreate, SiteOut, VersionCreate, VersionOut
from fluxqc.services import datasets

router = APIRouter(tags=["datasets"])


# ─────────────────────────────────────────────────────────────────────────────
# Sites
# ─────────────────────────────────────────────────────────────────────────────

@router.post("/sites", response_model=Envelope[SiteOut])
def create_site(payload: SiteCreate, db: Session = Depends(get_db)):
    return ok(datasets.create_site(db, **payload.model_dump()))


@router.get("/sites", response_model=Envelope[List[SiteOut]])
def list_sites(db: Session = Depends(get_db)):
    return ok(datasets.list_sites(db))


# ─────────────────────────────────────────────────────────────────────────────
# Datasets
# ─────────────────────────────────────────────────────────────────────────────

@router.post("/datasets", response_model=Envelope[DatasetOut])
def register_dataset(payload: DatasetCreate, db: Session = Depends(get_db)):
    return ok(datasets.register_dataset(db, **payload.model_dump()))


@router.get("/datasets", response_model=Envelope[List[DatasetOut]])
def list_datasets(site_id: Optional[int] = None, db: Session = Depends(get_db)):
    return ok(datasets.list_datasets(db, site_id))


@router.get("/datasets/{dataset_id}", response_model=Envelope[DatasetOut])
def get_dataset(dataset_id: int, db: Session = Depends(get_db)):
    return ok(datasets.get_dataset_or_raise(db, dataset_id))


# ─────────────────────────────────────────────────────────────────────────────
# Versions
# ─────────────────────────────────────────────────────────────────────────────

@router.post("/datasets/{dataset_id}/versions", response_model=Envelope[VersionOut])
def create_version(dataset_id: int, payload: VersionCreate, db: Session = Depends(get_db)):
    return ok(datasets.create_version(db, dataset_id, **payload.model_dump()))


@router.get("/datasets/{dataset_id}/versions", response_model=Envelope[List[VersionOut]])
def list_versions(dataset_id: int, db: Session = Depends(get_db)):
    return ok(datasets.list_versions(db, dataset_id))
