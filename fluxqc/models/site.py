from sqlalchemy import Column, Integer, String, Float, DateTime, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime
from fluxqc.database import Base


class Site(Base):
    __tablename__ = "sys_site"

    id = Column(Integer, primary_key=True, index=True)
    site_name = Column(String, nullable=False)
    description = Column(String, nullable=True)

    latitude = Column(Float, nullable=True)     # -90 .. 90
    longitude = Column(Float, nullable=True)    # -180 .. 180
    altitude = Column(Float, nullable=True)     # metres

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)
    is_del = Column(Boolean, default=False, nullable=False)

    datasets = relationship("Dataset", back_populates="site")
