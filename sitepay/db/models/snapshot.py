from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sitepay.db.base_class import Base

class SalarySnapshot(Base):
    __tablename__ = "salary_snapshots"
    __table_args__ = (UniqueConstraint("worker_id", "year", "month", name="uq_snapshot_month"),)

    id = Column(Integer, primary_key=True, index=True)
    worker_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    status = Column(String(20), default="issued", index=True) # issued, approved, paid

    employment_type = Column(String(30), nullable=True)
    daily_rate = Column(Float, nullable=True)
    snapshot_version = Column(String(30), nullable=True)
    template_version = Column(String(30), nullable=True)
    payload = Column(JSON, nullable=False)

    issued_at = Column(DateTime(timezone=True), server_default=func.now())
    issuer_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    paid_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    worker = relationship("User", foreign_keys=[worker_id])

    @property
    def month_label(self):
        return f"{self.year}-{self.month:02d}"
