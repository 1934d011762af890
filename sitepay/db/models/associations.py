from sqlalchemy import Table, Column, Integer, ForeignKey
from sitepay.db.base_class import Base

site_users = Table(
    "site_users",
    Base.metadata,
    Column("site_id", Integer, ForeignKey("sites.id"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id"), primary_key=True),
)
