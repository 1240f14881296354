"""
Site, dataset and dataset-version metadata.

Registering a dataset reads the source file header once, creates one
ColumnSetting row per column (with index and inferred data type), picks the
timestamp column and records the RAW version.
"""

import logging
from typing import List, Optional

import pandas as pd
from sqlalchemy.orm import Session

from fluxqc.models.column_setting import ColumnSetting
from fluxqc.models.dataset import Dataset, DatasetVersion
from fluxqc.models.site import Site
from fluxqc.services.errors import NotFoundError, ValidationError
from fluxqc.services.table_reader import ParsedTable, read_table

logger = logging.getLogger(__name__)

STAGE_TYPES = ("RAW", "FILTERED", "QC")

DEFAULT_MISSING_VALUE_TYPES = ["", "NA", "N/A", "NaN", "null", "-9999", "-6999"]

# Lower-cased header names recognised as the timestamp column, in preference order
TIME_COLUMN_CANDIDATES = (
    "timestamp",
    "datetime",
    "date_time",
    "time",
    "date",
    "record_time",
    "timestamp_start",
    "timestamp_end",
)


# ─────────────────────────────────────────────────────────────────────────────
# Lookups
# ─────────────────────────────────────────────────────────────────────────────

def get_site_or_raise(db: Session, site_id: int) -> Site:
    site = db.query(Site).filter(Site.id == site_id, Site.is_del == False).first()  # noqa: E712
    if not site:
        raise NotFoundError("Site", site_id)
    return site


def get_dataset_or_raise(db: Session, dataset_id: int) -> Dataset:
    dataset = (
        db.query(Dataset)
        .filter(Dataset.id == dataset_id, Dataset.is_del == False)  # noqa: E712
        .first()
    )
    if not dataset:
        raise NotFoundError("Dataset", dataset_id)
    return dataset


def get_version_or_raise(db: Session, dataset_id: int, version_id: int) -> DatasetVersion:
    """A version only counts as found when it belongs to the given dataset."""
    version = (
        db.query(DatasetVersion)
        .filter(
            DatasetVersion.id == version_id,
            DatasetVersion.dataset_id == dataset_id,
            DatasetVersion.is_del == False,  # noqa: E712
        )
        .first()
    )
    if not version:
        raise NotFoundError("DatasetVersion", version_id)
    return version


# ─────────────────────────────────────────────────────────────────────────────
# Sites
# ─────────────────────────────────────────────────────────────────────────────

def create_site(db: Session, site_name: str, description: Optional[str] = None,
                latitude: Optional[float] = None, longitude: Optional[float] = None,
                altitude: Optional[float] = None) -> Site:
    if not site_name or not site_name.strip():
        raise ValidationError("site_name must not be empty")
    if latitude is not None and not -90 <= latitude <= 90:
        raise ValidationError("latitude must be between -90 and 90")
    if longitude is not None and not -180 <= longitude <= 180:
        raise ValidationError("longitude must be between -180 and 180")

    site = Site(
        site_name=site_name.strip(),
        description=description,
        latitude=latitude,
        longitude=longitude,
        altitude=altitude,
    )
    db.add(site)
    db.commit()
    db.refresh(site)
    logger.info("Created site %s (%s)", site.id, site.site_name)
    return site


def list_sites(db: Session) -> List[Site]:
    return db.query(Site).filter(Site.is_del == False).order_by(Site.id).all()  # noqa: E712


# ─────────────────────────────────────────────────────────────────────────────
# Datasets
# ─────────────────────────────────────────────────────────────────────────────

def infer_data_type(values: pd.Series) -> str:
    """Classify a raw string column as number, datetime or string."""
    present = values.dropna().astype(str)
    present = present[present.str.strip() != ""]
    if present.empty:
        return "string"
    if pd.to_numeric(present, errors="coerce").notna().all():
        return "number"
    parsed = pd.to_datetime(present, errors="coerce", format="mixed")
    if parsed.notna().all():
        return "datetime"
    return "string"


def detect_time_column(table: ParsedTable, data_types: dict[str, str]) -> Optional[str]:
    lowered = {col.strip().lower(): col for col in table.columns}
    for candidate in TIME_COLUMN_CANDIDATES:
        if candidate in lowered:
            return lowered[candidate]
    for col in table.columns:
        if data_types.get(col) == "datetime":
            return col
    return None


def register_dataset(db: Session, site_id: int, dataset_name: str, file_path: str,
                     missing_value_types: Optional[List[str]] = None,
                     description: Optional[str] = None) -> Dataset:
    get_site_or_raise(db, site_id)
    if not dataset_name or not dataset_name.strip():
        raise ValidationError("dataset_name must not be empty")

    tokens = missing_value_types if missing_value_types is not None else DEFAULT_MISSING_VALUE_TYPES
    table = read_table(file_path, tokens)
    data_types = {col: infer_data_type(table.rows[col]) for col in table.columns}
    time_column = detect_time_column(table, data_types)

    dataset = Dataset(
        site_id=site_id,
        dataset_name=dataset_name.strip(),
        source_file_path=file_path,
        missing_value_types=list(tokens),
        time_column=time_column,
        description=description,
    )
    db.add(dataset)
    db.flush()

    for index, col in enumerate(table.columns):
        db.add(ColumnSetting(
            dataset_id=dataset.id,
            column_name=col,
            column_index=index,
            data_type=data_types[col],
            # the timestamp column is never a detection/imputation target
            is_active=col != time_column,
        ))

    db.add(DatasetVersion(
        dataset_id=dataset.id,
        stage_type="RAW",
        file_path=file_path,
        remark="Imported source file",
    ))
    db.commit()
    db.refresh(dataset)
    logger.info(
        "Registered dataset %s with %d columns (time column: %s)",
        dataset.id, len(table.columns), time_column,
    )
    return dataset


def list_datasets(db: Session, site_id: Optional[int] = None) -> List[Dataset]:
    query = db.query(Dataset).filter(Dataset.is_del == False)  # noqa: E712
    if site_id is not None:
        query = query.filter(Dataset.site_id == site_id)
    return query.order_by(Dataset.id).all()


# ─────────────────────────────────────────────────────────────────────────────
# Versions
# ─────────────────────────────────────────────────────────────────────────────

def create_version(db: Session, dataset_id: int, stage_type: str, file_path: str,
                   parent_version_id: Optional[int] = None,
                   remark: Optional[str] = None) -> DatasetVersion:
    get_dataset_or_raise(db, dataset_id)
    if stage_type not in STAGE_TYPES:
        raise ValidationError(f"stage_type must be one of {', '.join(STAGE_TYPES)}")
    if not file_path:
        raise ValidationError("file_path must not be empty")
    if parent_version_id is not None:
        get_version_or_raise(db, dataset_id, parent_version_id)

    version = DatasetVersion(
        dataset_id=dataset_id,
        parent_version_id=parent_version_id,
        stage_type=stage_type,
        file_path=file_path,
        remark=remark,
    )
    db.add(version)
    db.commit()
    db.refresh(version)
    return version


def list_versions(db: Session, dataset_id: int) -> List[DatasetVersion]:
    get_dataset_or_raise(db, dataset_id)
    return (
        db.query(DatasetVersion)
        .filter(DatasetVersion.dataset_id == dataset_id, DatasetVersion.is_del == False)  # noqa: E712
        .order_by(DatasetVersion.id)
        .all()
    )
