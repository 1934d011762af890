from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from sitepay.db.base_class import Base

class EmploymentTaxRate(Base):
    __tablename__ = "employment_tax_rates"
    __table_args__ = (UniqueConstraint("employment_type", "tax_category", name="uq_tax_rate_category"),)

    id = Column(Integer, primary_key=True, index=True)
    employment_type = Column(String(30), nullable=False, index=True)
    tax_category = Column(String(30), nullable=False)
    tax_name = Column(String(100), nullable=False)
    rate = Column(Float, nullable=False) # percent of gross
    calculation_method = Column(String(20), default="percentage")
    description = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
