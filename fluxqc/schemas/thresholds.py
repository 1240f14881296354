from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

ScopeType = Literal["APP", "SITE", "DATASET"]


class ColumnThresholdOut(BaseModel):
    id: int
    dataset_id: int
    column_name: str
    column_index: Optional[int] = None
    data_type: Optional[str] = None
    min_threshold: Optional[float] = None
    max_threshold: Optional[float] = None
    physical_min: Optional[float] = None
    physical_max: Optional[float] = None
    warning_min: Optional[float] = None
    warning_max: Optional[float] = None
    unit: Optional[str] = None
    variable_type: Optional[str] = None
    is_active: bool = True
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ColumnThresholdUpdate(BaseModel):
    """Omitted fields are left alone; an explicit null clears the field."""
    min_threshold: Optional[float] = None
    max_threshold: Optional[float] = None
    physical_min: Optional[float] = None
    physical_max: Optional[float] = None
    warning_min: Optional[float] = None
    warning_max: Optional[float] = None
    unit: Optional[str] = None
    variable_type: Optional[str] = None

    model_config = {"extra": "forbid"}


class ColumnThresholdBatchItem(ColumnThresholdUpdate):
    id: int


class BatchUpdateResponse(BaseModel):
    updated_count: int


class TemplateEntry(BaseModel):
    min: float
    max: float
    unit: Optional[str] = None


class ApplyTemplateRequest(BaseModel):
    template_name: Optional[str] = None
    template: Optional[dict[str, TemplateEntry]] = None


class ApplyTemplateResponse(BaseModel):
    applied_count: int


class ResolvedThreshold(BaseModel):
    column_name: str
    min_threshold: Optional[float] = None
    max_threshold: Optional[float] = None
    physical_min: Optional[float] = None
    physical_max: Optional[float] = None
    warning_min: Optional[float] = None
    warning_max: Optional[float] = None
    unit: Optional[str] = None
    variable_type: Optional[str] = None
    source: ScopeType = "APP"
    config_id: Optional[int] = None    # set when a SITE/APP config supplied the bounds

    @property
    def is_usable(self) -> bool:
        return self.min_threshold is not None or self.max_threshold is not None


class DetectionConfigCreate(BaseModel):
    scope_type: ScopeType
    scope_id: Optional[int] = None
    column_name: Optional[str] = None
    detection_method: str
    method_params: dict[str, Any] = Field(default_factory=dict)
    priority: int = 0
    is_active: bool = True


class DetectionConfigUpdate(BaseModel):
    # scope_type / scope_id are the config's identity and cannot change
    column_name: Optional[str] = None
    detection_method: Optional[str] = None
    method_params: Optional[dict[str, Any]] = None
    priority: Optional[int] = None
    is_active: Optional[bool] = None

    model_config = {"extra": "forbid"}


class DetectionConfigOut(BaseModel):
    id: int
    scope_type: ScopeType
    scope_id: Optional[int] = None
    column_name: Optional[str] = None
    detection_method: str
    method_params: Optional[dict[str, Any]] = None
    priority: int
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CreatedResponse(BaseModel):
    id: int
