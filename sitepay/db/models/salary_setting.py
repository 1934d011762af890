from sqlalchemy import Column, Integer, String, Float, Boolean, Date, DateTime, Text, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sitepay.db.base_class import Base

class WorkerSalarySetting(Base):
    __tablename__ = "worker_salary_settings"

    id = Column(Integer, primary_key=True, index=True)
    worker_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    employment_type = Column(String(30), nullable=False)
    daily_rate = Column(Float, nullable=False)
    hourly_rate = Column(Float, nullable=True)
    custom_tax_rates = Column(JSON, nullable=True) # {"income_tax": 3.3, ...}
    bank_account_info = Column(JSON, nullable=True)
    effective_date = Column(Date, nullable=False)
    is_active = Column(Boolean, default=True)
    notes = Column(Text, nullable=True)

    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    worker = relationship("User", foreign_keys=[worker_id])
    created_by = relationship("User", foreign_keys=[created_by_id])
