from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class ImputationMethodOut(BaseModel):
    id: str
    name: str
    category: str
    description: str
    default_params: dict[str, Any]
    requires_external_runtime: bool
    is_available: bool
    estimated_time: str
    accuracy: str
    priority: int

    model_config = {"from_attributes": True}


class ExecuteImputationRequest(BaseModel):
    dataset_id: int
    version_id: int
    method_id: str
    target_columns: List[str]
    params: dict[str, Any] = Field(default_factory=dict)


class ColumnImputationResult(BaseModel):
    column_name: str
    missing_count: int
    imputed_count: int
    imputation_rate: float


class ImputationSummary(BaseModel):
    result_id: int
    status: str
    method_id: str
    applied_method: str
    total_missing: int
    imputed_count: int
    imputation_rate: float
    execution_time_ms: int
    column_results: List[ColumnImputationResult] = Field(default_factory=list)


class QueuedImputation(BaseModel):
    result_id: int
    status: str


class ImputationResultOut(BaseModel):
    id: int
    dataset_id: int
    version_id: int
    method_id: str
    target_columns: List[str]
    method_params: Optional[dict[str, Any]] = None
    total_missing: int
    imputed_count: int
    imputation_rate: float
    execution_time_ms: Optional[int] = None
    status: str
    error_message: Optional[str] = None
    executed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ImputationDetailOut(BaseModel):
    id: int
    column_name: str
    row_index: int
    time_point: Optional[str] = None
    original_value: Optional[float] = None
    imputed_value: float
    confidence: Optional[float] = None
    imputation_method: Optional[str] = None

    model_config = {"from_attributes": True}


class ImputationDetailsPage(BaseModel):
    details: List[ImputationDetailOut]
    total: int


class ImputationColumnStatOut(BaseModel):
    id: int
    column_name: str
    missing_count: int
    imputed_count: int
    imputation_rate: float
    mean_before: Optional[float] = None
    mean_after: Optional[float] = None
    std_before: Optional[float] = None
    std_after: Optional[float] = None
    min_imputed: Optional[float] = None
    max_imputed: Optional[float] = None
    avg_confidence: Optional[float] = None

    model_config = {"from_attributes": True}
