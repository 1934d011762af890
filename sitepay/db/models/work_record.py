from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sitepay.db.base_class import Base

class WorkRecord(Base):
    __tablename__ = "work_records"
    __table_args__ = (UniqueConstraint("user_id", "site_id", "work_date", name="uq_work_record_day"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    site_id = Column(Integer, ForeignKey("sites.id"), nullable=False, index=True)
    work_date = Column(Date, nullable=False, index=True)

    labor_hours = Column(Float, nullable=True) # man-days, 1.0 = one 8 hour day
    work_hours = Column(Float, default=0.0)
    overtime_hours = Column(Float, default=0.0)
    check_in_time = Column(String(5), nullable=True) # HH:MM
    check_out_time = Column(String(5), nullable=True)
    status = Column(String(20), default="present")
    notes = Column(Text, nullable=True)

    assigned_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", foreign_keys=[user_id])
    site = relationship("Site")
    assigned_by = relationship("User", foreign_keys=[assigned_by_id])
