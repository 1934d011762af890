from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Text, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sitepay.db.base_class import Base

class SalaryRecord(Base):
    __tablename__ = "salary_records"

    id = Column(Integer, primary_key=True, index=True)
    worker_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    site_id = Column(Integer, ForeignKey("sites.id"), nullable=True)
    work_date = Column(Date, nullable=False, index=True)
    employment_type = Column(String(30), nullable=True)

    labor_hours = Column(Float, default=0.0)
    regular_hours = Column(Float, default=0.0)
    overtime_hours = Column(Float, default=0.0)

    base_pay = Column(Float, default=0.0)
    overtime_pay = Column(Float, default=0.0)
    bonus_pay = Column(Float, default=0.0)
    deductions = Column(Float, default=0.0) # other deductions
    income_tax = Column(Float, default=0.0)
    resident_tax = Column(Float, default=0.0)
    national_pension = Column(Float, default=0.0)
    health_insurance = Column(Float, default=0.0)
    employment_insurance = Column(Float, default=0.0)
    tax_amount = Column(Float, default=0.0)
    total_pay = Column(Float, default=0.0)

    status = Column(String(20), default="calculated", index=True) # calculated, approved, paid
    tax_details = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    worker = relationship("User")
    site = relationship("Site")
