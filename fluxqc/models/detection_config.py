from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON, Index
from datetime import datetime
from fluxqc.database import Base


class DetectionConfig(Base):
    __tablename__ = "conf_outlier_detection"
    __table_args__ = (Index("idx_outlier_detection_scope", "scope_type", "scope_id", "column_name"),)

    id = Column(Integer, primary_key=True, index=True)

    scope_type = Column(String, nullable=False)     # APP | SITE | DATASET
    scope_id = Column(Integer, nullable=True)       # NULL for APP, site id / dataset id otherwise
    column_name = Column(String, nullable=True)     # NULL = applies to every column in scope

    detection_method = Column(String, nullable=False)
    method_params = Column(JSON, nullable=True)
    priority = Column(Integer, default=0, nullable=False)   # lower wins within a scope
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)
    is_del = Column(Boolean, default=False, nullable=False)
