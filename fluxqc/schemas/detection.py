from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class MethodParamOut(BaseModel):
    key: str
    label: str
    type: str
    default: Any
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    tooltip: str = ""

    model_config = {"from_attributes": True}


class DetectionMethodOut(BaseModel):
    id: str
    name: str
    category: str
    description: str
    requires_external_runtime: bool
    is_available: bool
    compute_cost: str
    params: List[MethodParamOut]

    model_config = {"from_attributes": True}


class ExecuteDetectionRequest(BaseModel):
    dataset_id: int
    version_id: int
    column_names: Optional[List[str]] = None
    method_id: Optional[str] = None
    params: Optional[dict[str, Any]] = None


class ColumnDetectionResult(BaseModel):
    column_name: str
    outlier_count: int
    min_threshold: Optional[float] = None
    max_threshold: Optional[float] = None
    threshold_source: str


class DetectionSummary(BaseModel):
    result_id: int
    status: str
    detection_method: str
    total_rows: int
    columns_checked: int
    outlier_count: int
    outlier_rate: float
    stored_detail_count: int
    details_truncated: bool
    column_results: List[ColumnDetectionResult] = Field(default_factory=list)


class DetectionResultOut(BaseModel):
    id: int
    dataset_id: int
    version_id: int
    detection_method: str
    detection_params: Optional[dict[str, Any]] = None
    status: str
    error_message: Optional[str] = None
    total_rows: int
    columns_checked: int
    outlier_count: int
    outlier_rate: float
    stored_detail_count: int
    details_truncated: bool
    generated_version_id: Optional[int] = None
    executed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DetectionDetailOut(BaseModel):
    id: int
    column_name: str
    row_index: int
    time_point: Optional[str] = None
    original_value: Optional[float] = None
    outlier_type: str
    threshold_value: Optional[float] = None

    model_config = {"from_attributes": True}


class DetectionDetailsPage(BaseModel):
    details: List[DetectionDetailOut]
    total: int


class DetectionColumnStatOut(BaseModel):
    id: int
    column_name: str
    outlier_count: int
    min_threshold: Optional[float] = None
    max_threshold: Optional[float] = None
    threshold_source: Optional[str] = None

    model_config = {"from_attributes": True}
