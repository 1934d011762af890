import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sitepay.core.config import settings
from sitepay.core.exceptions import DomainError
from sitepay.core.logging import setup_logging
from sitepay.db.base import Base
from sitepay.db.session import engine
from sitepay.routers import auth, payroll, payroll_settings, sites, snapshots, users, work_records

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return JSONResponse(status_code=exc.status_code, content={"status": "error", "detail": str(exc)})

@app.get("/health")
async def health():
    return {"status": "ok", "project": settings.PROJECT_NAME}

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(sites.router)
app.include_router(work_records.router)
app.include_router(payroll_settings.router)
app.include_router(payroll.router)
app.include_router(snapshots.router)

# Create tables on startup (Simple approach)
@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    logger.info("%s started, database %s", settings.PROJECT_NAME, "sqlite" if settings.USE_SQLITE else "mysql")
