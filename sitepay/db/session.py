from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sitepay.core.config import settings

engine = create_engine(
    settings.SQLALCHEMY_DATABASE_URI,
    pool_pre_ping=not settings.USE_SQLITE,
    connect_args={"check_same_thread": False} if settings.USE_SQLITE else {}
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
