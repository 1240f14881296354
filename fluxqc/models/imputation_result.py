from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Boolean, JSON, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from fluxqc.database import Base


class ImputationResult(Base):
    __tablename__ = "biz_imputation_result"

    id = Column(Integer, primary_key=True, index=True)
    dataset_id = Column(Integer, ForeignKey("sys_dataset.id"), nullable=False, index=True)
    version_id = Column(Integer, ForeignKey("biz_dataset_version.id"), nullable=False)

    method_id = Column(String, nullable=False)
    target_columns = Column(JSON, nullable=False)
    method_params = Column(JSON, nullable=True)

    total_missing = Column(Integer, default=0)
    imputed_count = Column(Integer, default=0)
    imputation_rate = Column(Float, default=0.0)    # imputed_count / total_missing
    execution_time_ms = Column(Integer, nullable=True)

    # PENDING -> RUNNING -> COMPLETED | FAILED
    status = Column(String, default="PENDING", nullable=False)
    error_message = Column(String, nullable=True)

    executed_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)
    is_del = Column(Boolean, default=False, nullable=False)

    details = relationship("ImputationDetail", back_populates="result")
    column_stats = relationship("ImputationColumnStat", back_populates="result")


class ImputationDetail(Base):
    __tablename__ = "biz_imputation_detail"
    __table_args__ = (Index("idx_imputation_detail_result", "result_id", "column_name", "row_index"),)

    id = Column(Integer, primary_key=True, index=True)
    result_id = Column(Integer, ForeignKey("biz_imputation_result.id"), nullable=False)

    column_name = Column(String, nullable=False)
    row_index = Column(Integer, nullable=False)     # 0-based data row
    time_point = Column(String, nullable=True)
    original_value = Column(Float, nullable=True)   # always NULL: only missing cells are filled
    imputed_value = Column(Float, nullable=False)
    confidence = Column(Float, nullable=True)       # 0..1
    imputation_method = Column(String, nullable=True)  # method actually used (after fallback)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)
    is_del = Column(Boolean, default=False, nullable=False)

    result = relationship("ImputationResult", back_populates="details")


class ImputationColumnStat(Base):
    __tablename__ = "biz_imputation_column_stat"

    id = Column(Integer, primary_key=True, index=True)
    result_id = Column(Integer, ForeignKey("biz_imputation_result.id"), nullable=False, index=True)

    column_name = Column(String, nullable=False)
    missing_count = Column(Integer, default=0)
    imputed_count = Column(Integer, default=0)
    imputation_rate = Column(Float, default=0.0)

    mean_before = Column(Float, nullable=True)
    mean_after = Column(Float, nullable=True)
    std_before = Column(Float, nullable=True)
    std_after = Column(Float, nullable=True)
    # Over imputed values only
    min_imputed = Column(Float, nullable=True)
    max_imputed = Column(Float, nullable=True)
    avg_confidence = Column(Float, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)
    is_del = Column(Boolean, default=False, nullable=False)

    result = relationship("ImputationResult", back_populates="column_stats")
