"""
Scope resolution: which thresholds apply to a column.

Strategies are tried in order DATASET, SITE, APP; the first one yielding a
usable bound wins. A column nothing applies to resolves to an empty threshold
tagged APP. Resolution only reads.
"""

from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from fluxqc.models.column_setting import ColumnSetting
from fluxqc.models.detection_config import DetectionConfig
from fluxqc.schemas.thresholds import ResolvedThreshold
from fluxqc.services.detection_methods import THRESHOLD_STATIC

_METADATA_FIELDS = ("physical_min", "physical_max", "warning_min", "warning_max", "unit", "variable_type")


class DatasetColumnStrategy:
    scope_type = "DATASET"

    def lookup(self, db: Session, column_name: str, dataset_id: int, site_id: Optional[int],
               setting: Optional[ColumnSetting]) -> Optional[ResolvedThreshold]:
        if setting is None:
            return None
        if setting.min_threshold is None and setting.max_threshold is None:
            return None
        return ResolvedThreshold(
            column_name=column_name,
            min_threshold=setting.min_threshold,
            max_threshold=setting.max_threshold,
            source=self.scope_type,
            **{name: getattr(setting, name) for name in _METADATA_FIELDS},
        )


class ConfigScopeStrategy:
    """Static-threshold configs at one scope level, best priority first."""

    def __init__(self, scope_type: str):
        self.scope_type = scope_type

    def candidates(self, db: Session, column_name: str, site_id: Optional[int]) -> List[DetectionConfig]:
        query = db.query(DetectionConfig).filter(
            DetectionConfig.scope_type == self.scope_type,
            DetectionConfig.detection_method == THRESHOLD_STATIC,
            DetectionConfig.is_active == True,  # noqa: E712
            DetectionConfig.is_del == False,  # noqa: E712
            (DetectionConfig.column_name == column_name) | (DetectionConfig.column_name.is_(None)),
        )
        if self.scope_type == "SITE":
            if site_id is None:
                return []
            query = query.filter(DetectionConfig.scope_id == site_id)
        return sorted(query.all(), key=lambda c: (c.priority or 0, c.column_name is None, c.id))

    def lookup(self, db: Session, column_name: str, dataset_id: int, site_id: Optional[int],
               setting: Optional[ColumnSetting]) -> Optional[ResolvedThreshold]:
        for config in self.candidates(db, column_name, site_id):
            params = config.method_params or {}
            low, high = params.get("min_value"), params.get("max_value")
            if low is None and high is None:
                continue
            metadata = {}
            if setting is not None:
                metadata = {name: getattr(setting, name) for name in ("unit", "variable_type")}
            return ResolvedThreshold(
                column_name=column_name,
                min_threshold=low,
                max_threshold=high,
                source=self.scope_type,
                config_id=config.id,
                **metadata,
            )
        return None


DEFAULT_STRATEGIES = (
    DatasetColumnStrategy(),
    ConfigScopeStrategy("SITE"),
    ConfigScopeStrategy("APP"),
)


class ScopeResolver:
    def __init__(self, db: Session, strategies: Iterable = DEFAULT_STRATEGIES):
        self.db = db
        self.strategies = tuple(strategies)

    def _setting(self, column_name: str, dataset_id: int) -> Optional[ColumnSetting]:
        return (
            self.db.query(ColumnSetting)
            .filter(
                ColumnSetting.dataset_id == dataset_id,
                ColumnSetting.column_name == column_name,
                ColumnSetting.is_del == False,  # noqa: E712
            )
            .first()
        )

    def resolve(self, column_name: str, dataset_id: int, site_id: Optional[int] = None) -> ResolvedThreshold:
        setting = self._setting(column_name, dataset_id)
        for strategy in self.strategies:
            resolved = strategy.lookup(self.db, column_name, dataset_id, site_id, setting)
            if resolved is not None:
                return resolved
        return ResolvedThreshold(column_name=column_name, source="APP")

    def resolve_many(self, column_names: Iterable[str], dataset_id: int,
                     site_id: Optional[int] = None) -> Dict[str, ResolvedThreshold]:
        return {name: self.resolve(name, dataset_id, site_id) for name in column_names}
