from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from fluxqc.database import Base


class ColumnSetting(Base):
    """Per-dataset, per-column threshold record (the DATASET scope)."""

    __tablename__ = "conf_column_setting"
    __table_args__ = (UniqueConstraint("dataset_id", "column_name", name="uq_column_setting_dataset_column"),)

    id = Column(Integer, primary_key=True, index=True)
    dataset_id = Column(Integer, ForeignKey("sys_dataset.id"), nullable=False, index=True)
    column_name = Column(String, nullable=False)
    column_index = Column(Integer, nullable=True)   # 0-based position in the source file
    data_type = Column(String, nullable=True)       # number | string | datetime

    # Operational bounds used for detection
    min_threshold = Column(Float, nullable=True)
    max_threshold = Column(Float, nullable=True)
    # Hard physical limits
    physical_min = Column(Float, nullable=True)
    physical_max = Column(Float, nullable=True)
    # Soft bounds, outside needs review
    warning_min = Column(Float, nullable=True)
    warning_max = Column(Float, nullable=True)

    unit = Column(String, nullable=True)            # e.g. °C, W/m², μmol/m²/s
    variable_type = Column(String, nullable=True)   # e.g. temperature, radiation, flux
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)
    is_del = Column(Boolean, default=False, nullable=False)

    dataset = relationship("Dataset", back_populates="column_settings")
