"""Detection configuration CRUD for the APP / SITE / DATASET scopes."""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from fluxqc.models.detection_config import DetectionConfig
from fluxqc.schemas.thresholds import DetectionConfigCreate, DetectionConfigUpdate
from fluxqc.services.datasets import get_dataset_or_raise, get_site_or_raise
from fluxqc.services.detection_methods import check_params
from fluxqc.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

SCOPE_APP = "APP"
SCOPE_SITE = "SITE"
SCOPE_DATASET = "DATASET"

# Explicit null is not allowed for these on update
_NON_NULLABLE = ("detection_method", "priority", "is_active")


def get_config_or_raise(db: Session, config_id: int) -> DetectionConfig:
    config = (
        db.query(DetectionConfig)
        .filter(DetectionConfig.id == config_id, DetectionConfig.is_del == False)  # noqa: E712
        .first()
    )
    if not config:
        raise NotFoundError("DetectionConfig", config_id)
    return config


def list_configs(db: Session, scope_type: Optional[str] = None,
                 scope_id: Optional[int] = None) -> List[DetectionConfig]:
    query = db.query(DetectionConfig).filter(DetectionConfig.is_del == False)  # noqa: E712
    if scope_type is not None:
        query = query.filter(DetectionConfig.scope_type == scope_type)
        if scope_type != SCOPE_APP and scope_id is not None:
            query = query.filter(DetectionConfig.scope_id == scope_id)
    return query.order_by(DetectionConfig.priority, DetectionConfig.id).all()


def _check_scope(db: Session, scope_type: str, scope_id: Optional[int]) -> Optional[int]:
    if scope_type == SCOPE_APP:
        return None
    if scope_id is None:
        raise ValidationError(f"scope_id is required for {scope_type} scope")
    if scope_type == SCOPE_SITE:
        get_site_or_raise(db, scope_id)
    else:
        get_dataset_or_raise(db, scope_id)
    return scope_id


def create_config(db: Session, data: DetectionConfigCreate) -> DetectionConfig:
    scope_id = _check_scope(db, data.scope_type, data.scope_id)
    params = check_params(data.detection_method, data.method_params)

    config = DetectionConfig(
        scope_type=data.scope_type,
        scope_id=scope_id,
        column_name=data.column_name or None,
        detection_method=data.detection_method,
        method_params=params,
        priority=data.priority,
        is_active=data.is_active,
    )
    db.add(config)
    db.commit()
    db.refresh(config)
    logger.info("Created %s detection config %s (%s)", config.scope_type, config.id, config.detection_method)
    return config


def update_config(db: Session, config_id: int, data: DetectionConfigUpdate) -> DetectionConfig:
    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError(f"DetectionConfig {config_id}: no fields to update")
    for name in _NON_NULLABLE:
        if name in changes and changes[name] is None:
            raise ValidationError(f"{name} cannot be null")

    config = get_config_or_raise(db, config_id)
    method = changes.get("detection_method", config.detection_method)
    if "detection_method" in changes or "method_params" in changes:
        params = changes.get("method_params", config.method_params)
        changes["method_params"] = check_params(method, params)

    for name, value in changes.items():
        setattr(config, name, value)
    db.commit()
    db.refresh(config)
    return config


def delete_config(db: Session, config_id: int) -> None:
    """Soft delete; the config drops out of listing and resolution."""
    config = get_config_or_raise(db, config_id)
    config.is_del = True
    config.deleted_at = datetime.utcnow()
    db.commit()
    logger.info("Deleted detection config %s", config_id)
