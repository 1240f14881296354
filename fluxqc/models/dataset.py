from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from fluxqc.database import Base


class Dataset(Base):
    __tablename__ = "sys_dataset"

    id = Column(Integer, primary_key=True, index=True)
    site_id = Column(Integer, ForeignKey("sys_site.id"), nullable=False, index=True)

    dataset_name = Column(String, nullable=False)
    source_file_path = Column(String, nullable=True)
    # Tokens treated as missing when parsing, e.g. ["-9999", "NA"]
    missing_value_types = Column(JSON, nullable=True)
    # Timestamp column detected at registration; used for detail time_point
    time_column = Column(String, nullable=True)
    description = Column(String, nullable=True)

    import_time = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)
    is_del = Column(Boolean, default=False, nullable=False)

    # Relationships
    site = relationship("Site", back_populates="datasets")
    versions = relationship("DatasetVersion", back_populates="dataset")
    column_settings = relationship(
        "ColumnSetting",
        back_populates="dataset",
        order_by="ColumnSetting.column_index",
    )


class DatasetVersion(Base):
    __tablename__ = "biz_dataset_version"

    id = Column(Integer, primary_key=True, index=True)
    dataset_id = Column(Integer, ForeignKey("sys_dataset.id"), nullable=False, index=True)
    parent_version_id = Column(Integer, ForeignKey("biz_dataset_version.id"), nullable=True)

    stage_type = Column(String, nullable=False)   # RAW | FILTERED | QC
    file_path = Column(String, nullable=False)    # local path or s3://bucket/key
    remark = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)
    is_del = Column(Boolean, default=False, nullable=False)

    dataset = relationship("Dataset", back_populates="versions")
