"""
Threshold store: per-dataset column bounds (the DATASET scope).

Column thresholds are never deleted, only nulled out. Every write validates the
merged record against the ordering chain

    physical_min <= warning_min <= min_threshold <= max_threshold <= warning_max <= physical_max

for each pair whose values are both present.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from fluxqc.models.column_setting import ColumnSetting
from fluxqc.schemas.thresholds import ColumnThresholdBatchItem, ColumnThresholdUpdate, TemplateEntry
from fluxqc.services.datasets import get_dataset_or_raise
from fluxqc.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# Ordered low to high
THRESHOLD_CHAIN = (
    "physical_min",
    "warning_min",
    "min_threshold",
    "max_threshold",
    "warning_max",
    "physical_max",
)

EDITABLE_FIELDS = THRESHOLD_CHAIN + ("unit", "variable_type")


# ============================================================================
# FLUX TEMPLATES
# ============================================================================

# Keys match a column name first, then a column's variable_type
FLUX_THRESHOLD_TEMPLATES: Dict[str, Dict[str, dict]] = {
    "standard": {
        "Ta": {"min": -40, "max": 50, "unit": "°C"},
        "Ta_2m": {"min": -40, "max": 50, "unit": "°C"},
        "RH": {"min": 0, "max": 100, "unit": "%"},
        "VPD": {"min": 0, "max": 8, "unit": "kPa"},
        "SW_IN": {"min": 0, "max": 1400, "unit": "W/m²"},
        "SW_OUT": {"min": 0, "max": 1000, "unit": "W/m²"},
        "LW_IN": {"min": 100, "max": 600, "unit": "W/m²"},
        "LW_OUT": {"min": 200, "max": 700, "unit": "W/m²"},
        "PPFD": {"min": 0, "max": 2500, "unit": "μmol/m²/s"},
        "CO2": {"min": 350, "max": 550, "unit": "ppm"},
        "H2O": {"min": 0, "max": 50, "unit": "mmol/mol"},
        "NEE": {"min": -40, "max": 30, "unit": "μmol/m²/s"},
        "LE": {"min": -50, "max": 700, "unit": "W/m²"},
        "H": {"min": -100, "max": 500, "unit": "W/m²"},
        "USTAR": {"min": 0, "max": 3, "unit": "m/s"},
        "WS": {"min": 0, "max": 30, "unit": "m/s"},
        "WD": {"min": 0, "max": 360, "unit": "°"},
        "P": {"min": 0, "max": 100, "unit": "mm"},
        "PA": {"min": 80, "max": 110, "unit": "kPa"},
    },
    "strict": {
        "Ta": {"min": -30, "max": 45, "unit": "°C"},
        "RH": {"min": 5, "max": 100, "unit": "%"},
        "SW_IN": {"min": 0, "max": 1300, "unit": "W/m²"},
        "CO2": {"min": 380, "max": 500, "unit": "ppm"},
        "NEE": {"min": -30, "max": 20, "unit": "μmol/m²/s"},
    },
}


def get_templates() -> Dict[str, Dict[str, dict]]:
    return FLUX_THRESHOLD_TEMPLATES


# ============================================================================
# VALIDATION
# ============================================================================

def validate_threshold_record(values: dict) -> None:
    """Raise ValidationError if any two present bounds are out of chain order."""
    present = [(name, values.get(name)) for name in THRESHOLD_CHAIN if values.get(name) is not None]
    for i, (low_name, low) in enumerate(present):
        for high_name, high in present[i + 1:]:
            if low > high:
                raise ValidationError(f"{low_name} ({low}) must not exceed {high_name} ({high})")


def _merged(setting: ColumnSetting, changes: dict) -> dict:
    merged = {name: getattr(setting, name) for name in EDITABLE_FIELDS}
    merged.update(changes)
    return merged


# ============================================================================
# QUERIES
# ============================================================================

def list_column_thresholds(db: Session, dataset_id: int,
                           column_name: Optional[str] = None) -> List[ColumnSetting]:
    get_dataset_or_raise(db, dataset_id)
    query = db.query(ColumnSetting).filter(
        ColumnSetting.dataset_id == dataset_id,
        ColumnSetting.is_del == False,  # noqa: E712
    )
    if column_name is not None:
        query = query.filter(ColumnSetting.column_name == column_name)
    return query.order_by(ColumnSetting.column_index, ColumnSetting.id).all()


def get_column_setting_or_raise(db: Session, column_id: int) -> ColumnSetting:
    setting = (
        db.query(ColumnSetting)
        .filter(ColumnSetting.id == column_id, ColumnSetting.is_del == False)  # noqa: E712
        .first()
    )
    if not setting:
        raise NotFoundError("ColumnSetting", column_id)
    return setting


# ============================================================================
# UPDATES
# ============================================================================

def _apply_changes(db: Session, column_id: int, changes: dict) -> ColumnSetting:
    if not changes:
        raise ValidationError(f"Column {column_id}: no fields to update")
    setting = get_column_setting_or_raise(db, column_id)
    validate_threshold_record(_merged(setting, changes))
    for name, value in changes.items():
        setattr(setting, name, value)
    return setting


def update_column_threshold(db: Session, column_id: int, update: ColumnThresholdUpdate) -> ColumnSetting:
    setting = _apply_changes(db, column_id, update.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(setting)
    return setting


def batch_update_column_thresholds(db: Session, items: List[ColumnThresholdBatchItem]) -> int:
    """All or nothing: one invalid item rolls back the whole batch."""
    if not items:
        raise ValidationError("Batch update needs at least one item")
    try:
        for item in items:
            changes = item.model_dump(exclude_unset=True)
            column_id = changes.pop("id")
            try:
                _apply_changes(db, column_id, changes)
            except ValidationError as e:
                raise ValidationError(f"Column {column_id}: {e.message}")
        db.commit()
    except Exception:
        db.rollback()
        raise
    return len(items)


def apply_template(db: Session, dataset_id: int, template_name: Optional[str] = None,
                   template: Optional[Dict[str, TemplateEntry]] = None) -> int:
    """
    Copy template bounds onto a dataset's columns, matching by column name and
    then by variable_type. Returns the number of columns updated.
    """
    if template is None:
        if template_name is None:
            raise ValidationError("Either template_name or template is required")
        if template_name not in FLUX_THRESHOLD_TEMPLATES:
            raise ValidationError(f"Unknown threshold template: {template_name}")
        entries = {
            key: TemplateEntry(**value)
            for key, value in FLUX_THRESHOLD_TEMPLATES[template_name].items()
        }
    else:
        entries = template

    for key, entry in entries.items():
        if entry.min > entry.max:
            raise ValidationError(f"Template entry {key}: min must not exceed max")

    applied = 0
    try:
        for setting in list_column_thresholds(db, dataset_id):
            entry = entries.get(setting.column_name) or entries.get(setting.variable_type or "")
            if entry is None:
                continue
            changes = {"min_threshold": entry.min, "max_threshold": entry.max}
            if entry.unit and not setting.unit:
                changes["unit"] = entry.unit
            try:
                _apply_changes(db, setting.id, changes)
            except ValidationError as e:
                raise ValidationError(f"Column {setting.column_name}: {e.message}")
            applied += 1
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Applied %s template to %d columns of dataset %s",
                template_name or "custom", applied, dataset_id)
    return applied
