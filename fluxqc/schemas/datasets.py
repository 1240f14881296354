from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class SiteCreate(BaseModel):
    site_name: str
    description: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None


class SiteOut(BaseModel):
    id: int
    site_name: str
    description: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DatasetCreate(BaseModel):
    site_id: int
    dataset_name: str
    file_path: str
    missing_value_types: Optional[List[str]] = None
    description: Optional[str] = None


class DatasetOut(BaseModel):
    id: int
    site_id: int
    dataset_name: str
    source_file_path: Optional[str] = None
    missing_value_types: Optional[List[str]] = None
    time_column: Optional[str] = None
    description: Optional[str] = None
    import_time: Optional[datetime] = None

    model_config = {"from_attributes": True}


class VersionCreate(BaseModel):
    stage_type: str
    file_path: str
    parent_version_id: Optional[int] = None
    remark: Optional[str] = None


class VersionOut(BaseModel):
    id: int
    dataset_id: int
    parent_version_id: Optional[int] = None
    stage_type: str
    file_path: str
    remark: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
