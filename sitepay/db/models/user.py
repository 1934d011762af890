from sqlalchemy import Column, Integer, String, Boolean, Float, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sitepay.db.base_class import Base
from sitepay.db.models.associations import site_users

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(100))
    email = Column(String(100), nullable=True)
    phone = Column(String(20), nullable=True)
    # system_admin, admin, site_manager, customer_manager, partner, worker
    role = Column(String(20), default="worker")
    status = Column(String(20), default="active") # active, inactive
    is_active = Column(Boolean, default=True)

    # Fallbacks used when no salary setting exists
    employment_type = Column(String(30), nullable=True)
    daily_wage = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    sites = relationship("Site", secondary=site_users, back_populates="users")

    @property
    def display_name(self):
        return self.full_name or self.username
