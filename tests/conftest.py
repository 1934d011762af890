from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sitepay.core.security import create_access_token, get_password_hash
from sitepay.db.base import Base, Site, User, WorkRecord, WorkerSalarySetting
from sitepay.main import app
from sitepay.routers import deps


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[deps.get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _user(db, username, role, **kwargs):
    user = User(
        username=username,
        hashed_password=get_password_hash("secret"),
        full_name=kwargs.pop("full_name", username.title()),
        role=role,
        **kwargs
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def users(db):
    return {
        "admin": _user(db, "admin", "admin"),
        "manager": _user(db, "manager", "site_manager"),
        "worker": _user(db, "kim", "worker", full_name="Kim Worker", email="kim@example.com"),
        "worker2": _user(db, "lee", "worker", full_name="Lee Worker"),
        "partner": _user(db, "partner", "partner"),
    }


@pytest.fixture
def sites(db, users):
    site_a = Site(name="North Tower", address="1 North St")
    site_b = Site(name="South Yard", address="2 South St")
    site_a.users = [users["manager"], users["worker"]]
    db.add_all([site_a, site_b])
    db.commit()
    return {"a": site_a, "b": site_b}


@pytest.fixture
def auth():
    def headers(user):
        token = create_access_token(data={"sub": user.username, "role": user.role})
        return {"Authorization": f"Bearer {token}"}
    return headers


@pytest.fixture
def add_work(db):
    def add(user, site, work_date, labor_hours=1.0, work_hours=None):
        record = WorkRecord(
            user_id=user.id,
            site_id=site.id,
            work_date=work_date,
            labor_hours=labor_hours,
            work_hours=work_hours if work_hours is not None else labor_hours * 8,
            overtime_hours=max(0.0, (work_hours or labor_hours * 8) - 8),
        )
        db.add(record)
        db.commit()
        return record
    return add


@pytest.fixture
def add_setting(db):
    def add(user, employment_type="daily_worker", daily_rate=150000.0, effective_date=date(2024, 1, 1), **kwargs):
        setting = WorkerSalarySetting(
            worker_id=user.id,
            employment_type=employment_type,
            daily_rate=daily_rate,
            hourly_rate=round(daily_rate / 8, 2),
            effective_date=effective_date,
            is_active=True,
            **kwargs
        )
        db.add(setting)
        db.commit()
        return setting
    return add
