from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sitepay.db.base_class import Base

class SalaryRule(Base):
    __tablename__ = "salary_calculation_rules"

    id = Column(Integer, primary_key=True, index=True)
    rule_name = Column(String(100), nullable=False)
    rule_type = Column(String(30), nullable=False) # hourly_rate, daily_rate, overtime_multiplier, bonus_calculation
    base_amount = Column(Float, default=0.0)
    multiplier = Column(Float, nullable=True)
    conditions = Column(JSON, nullable=True)
    site_id = Column(Integer, ForeignKey("sites.id"), nullable=True) # null = every site
    role = Column(String(20), nullable=True) # null = every role
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    site = relationship("Site")
