"""
SQLAlchemy ORM models. Importing this package registers every table on Base.metadata.
"""
from fluxqc.models.site import Site
from fluxqc.models.dataset import Dataset, DatasetVersion
from fluxqc.models.column_setting import ColumnSetting
from fluxqc.models.detection_config import DetectionConfig
from fluxqc.models.detection_result import DetectionResult, DetectionDetail, DetectionColumnStat
from fluxqc.models.imputation_result import ImputationResult, ImputationDetail, ImputationColumnStat

__all__ = [
    "Site",
    "Dataset",
    "DatasetVersion",
    "ColumnSetting",
    "DetectionConfig",
    "DetectionResult",
    "DetectionDetail",
    "DetectionColumnStat",
    "ImputationResult",
    "ImputationDetail",
    "ImputationColumnStat",
]
