from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Boolean, JSON, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from fluxqc.database import Base


class DetectionResult(Base):
    __tablename__ = "biz_outlier_result"
    __table_args__ = (Index("idx_outlier_result_version", "version_id"),)

    id = Column(Integer, primary_key=True, index=True)
    dataset_id = Column(Integer, ForeignKey("sys_dataset.id"), nullable=False, index=True)
    version_id = Column(Integer, ForeignKey("biz_dataset_version.id"), nullable=False)

    detection_method = Column(String, nullable=False)
    # Parameters actually used: {columns: [...], params: {...}}
    detection_params = Column(JSON, nullable=True)

    # PENDING -> RUNNING -> COMPLETED | FAILED
    status = Column(String, default="PENDING", nullable=False)
    error_message = Column(String, nullable=True)

    total_rows = Column(Integer, default=0)
    columns_checked = Column(Integer, default=0)
    outlier_count = Column(Integer, default=0)      # exact, even when details are capped
    outlier_rate = Column(Float, default=0.0)       # 0..1 over checked cells
    stored_detail_count = Column(Integer, default=0)
    details_truncated = Column(Boolean, default=False)

    # FILTERED version produced by applying this result, if any
    generated_version_id = Column(Integer, ForeignKey("biz_dataset_version.id"), nullable=True)

    executed_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)
    is_del = Column(Boolean, default=False, nullable=False)

    details = relationship("DetectionDetail", back_populates="result")
    column_stats = relationship("DetectionColumnStat", back_populates="result")


class DetectionDetail(Base):
    __tablename__ = "biz_outlier_detail"
    __table_args__ = (Index("idx_outlier_detail_result", "result_id", "row_index"),)

    id = Column(Integer, primary_key=True, index=True)
    result_id = Column(Integer, ForeignKey("biz_outlier_result.id"), nullable=False)

    column_name = Column(String, nullable=False)
    row_index = Column(Integer, nullable=False)     # 0-based data row
    time_point = Column(String, nullable=True)
    original_value = Column(Float, nullable=True)
    outlier_type = Column(String, nullable=False)   # BELOW_MIN | ABOVE_MAX
    threshold_value = Column(Float, nullable=True)  # the bound that was violated

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)
    is_del = Column(Boolean, default=False, nullable=False)

    result = relationship("DetectionResult", back_populates="details")


class DetectionColumnStat(Base):
    __tablename__ = "biz_outlier_column_stat"

    id = Column(Integer, primary_key=True, index=True)
    result_id = Column(Integer, ForeignKey("biz_outlier_result.id"), nullable=False, index=True)

    column_name = Column(String, nullable=False)
    outlier_count = Column(Integer, default=0)
    # Snapshot of the bounds in effect for this run
    min_threshold = Column(Float, nullable=True)
    max_threshold = Column(Float, nullable=True)
    threshold_source = Column(String, nullable=True)  # DATASET | SITE | APP | method id

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)
    is_del = Column(Boolean, default=False, nullable=False)

    result = relationship("DetectionResult", back_populates="column_stats")
