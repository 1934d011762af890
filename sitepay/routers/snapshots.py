import logging
from typing import List, Optional

import pydantic
from fastapi import APIRouter, Depends, HTTPException, Body, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from sitepay.core.enums import Role, SnapshotStatus
from sitepay.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from sitepay.core.templates import templates
from sitepay.db.models.snapshot import SalarySnapshot
from sitepay.db.models.user import User
from sitepay.routers import deps
from sitepay.services.payroll.monthly import build_monthly_salary, month_work_records
from sitepay.services.payroll.snapshots import (
    payslip_context,
    publish_snapshots,
    snapshot_to_dict,
    transition_snapshots,
)
from sitepay.services.payroll.summary import month_totals, month_trend, worker_rows
from sitepay.utils.activity import log_activity
from sitepay.utils.email import send_payslip_email

router = APIRouter(
    prefix="/payroll",
    tags=["payroll-snapshots"],
    dependencies=[Depends(deps.get_current_user)]
)

logger = logging.getLogger(__name__)

class PreviewIn(pydantic.BaseModel):
    user_id: int
    year: int
    month: int

class PublishIn(pydantic.BaseModel):
    year: int
    month: int
    user_ids: List[int]

class SnapshotKey(pydantic.BaseModel):
    user_id: int
    year: int
    month: int

class TransitionIn(pydantic.BaseModel):
    entries: List[SnapshotKey]

def _get_snapshot(db: Session, snapshot_id: int) -> SalarySnapshot:
    snapshot = db.query(SalarySnapshot).filter(SalarySnapshot.id == snapshot_id).first()
    if not snapshot:
        raise NotFoundError("Snapshot not found")
    return snapshot

# -----------------------------------------------------------------------------
# 1. PREVIEW AND PUBLISH
# -----------------------------------------------------------------------------

@router.post("/preview")
async def preview_salary(
    data: PreviewIn = Body(...),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_roles(user, [Role.SITE_MANAGER.value])

    worker = db.query(User).filter(User.id == data.user_id).first()
    if not worker:
        raise HTTPException(status_code=404, detail="Worker not found")

    records = month_work_records(db, data.year, data.month, worker_ids=[worker.id])
    if not deps.is_admin(user):
        # Site managers only preview workers who worked on their sites
        site_ids = set(deps.managed_site_ids(user))
        if not any(r.site_id in site_ids for r in records):
            raise HTTPException(status_code=403, detail="Worker has no records on your sites")

    return build_monthly_salary(db, worker, data.year, data.month, records=records)

@router.post("/snapshots/publish")
async def publish(
    data: PublishIn = Body(...),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    result = publish_snapshots(db, data.year, data.month, data.user_ids, user)
    log_activity(db, user, "PUBLISH", "SALARY_SNAPSHOT", None,
                 f"{data.year}-{data.month:02d} workers {data.user_ids}: {result}")

    return {"status": "success", "message": "Snapshots published", **result}

def _transition(db: Session, user: User, data: TransitionIn, target: str, action: str) -> dict:
    deps.check_admin(user)
    if not data.entries:
        raise ValidationError("No snapshots selected")

    result = transition_snapshots(db, [e.model_dump() for e in data.entries], target, user)
    log_activity(db, user, action, "SALARY_SNAPSHOT", None,
                 f"{len(data.entries)} entries -> {target}: updated {result['updated']}, invalid {result['invalid']}")
    return result

@router.post("/snapshots/approve")
async def approve_snapshots(
    data: TransitionIn = Body(...),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    result = _transition(db, user, data, SnapshotStatus.APPROVED.value, "APPROVE")
    return {"status": "success", "message": f"{result['updated']} snapshots approved", **result}

@router.post("/snapshots/pay")
async def pay_snapshots(
    data: TransitionIn = Body(...),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    result = _transition(db, user, data, SnapshotStatus.PAID.value, "PAY")
    return {"status": "success", "message": f"{result['updated']} snapshots paid", **result}

# -----------------------------------------------------------------------------
# 2. SNAPSHOT LISTS AND PAYSLIPS
# -----------------------------------------------------------------------------

@router.get("/snapshots")
async def list_snapshots(
    year: Optional[int] = None,
    month: Optional[int] = None,
    status: Optional[str] = None,
    worker_id: Optional[int] = None,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    query = db.query(SalarySnapshot)
    if year:
        query = query.filter(SalarySnapshot.year == year)
    if month:
        query = query.filter(SalarySnapshot.month == month)
    if status:
        query = query.filter(SalarySnapshot.status == status)
    if worker_id:
        query = query.filter(SalarySnapshot.worker_id == worker_id)

    snapshots = query.order_by(SalarySnapshot.year.desc(), SalarySnapshot.month.desc(), SalarySnapshot.worker_id).all()
    return [snapshot_to_dict(s) for s in snapshots]

@router.get("/snapshots/mine")
async def my_snapshots(db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    snapshots = db.query(SalarySnapshot).filter(SalarySnapshot.worker_id == user.id)\
        .order_by(SalarySnapshot.year.desc(), SalarySnapshot.month.desc())\
        .all()
    return [snapshot_to_dict(s) for s in snapshots]

@router.get("/snapshots/{id}/payslip", response_class=HTMLResponse)
async def payslip(
    request: Request,
    id: int,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    snapshot = _get_snapshot(db, id)
    if snapshot.worker_id != user.id and not deps.is_admin(user):
        raise AuthorizationError("You can only view your own payslips")

    return templates.TemplateResponse(request, "payroll/payslip.html", payslip_context(snapshot))

@router.post("/snapshots/{id}/send")
async def send_payslip(
    id: int,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    snapshot = _get_snapshot(db, id)
    if not snapshot.worker or not snapshot.worker.email:
        raise ValidationError("Worker has no email address")

    await send_payslip_email(snapshot, [snapshot.worker.email])
    logger.info("Payslip %s sent to %s", snapshot.id, snapshot.worker.email)
    log_activity(db, user, "SEND", "SALARY_SNAPSHOT", snapshot.id,
                 f"Payslip {snapshot.month_label} sent to {snapshot.worker.email}")

    return {"status": "success", "message": f"Payslip sent to {snapshot.worker.email}"}

# -----------------------------------------------------------------------------
# 3. MONTHLY SUMMARY
# -----------------------------------------------------------------------------

@router.get("/summary")
async def summary(
    year: int,
    month: int,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)
    return month_totals(db, year, month)

@router.get("/summary/workers")
async def summary_workers(
    year: int,
    month: int,
    employment_type: Optional[str] = None,
    site_id: Optional[int] = None,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)
    return worker_rows(db, year, month, employment_type=employment_type, site_id=site_id)

@router.get("/summary/trend")
async def summary_trend(
    months: int = 3,
    year: Optional[int] = None,
    month: Optional[int] = None,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)
    if not 1 <= months <= 12:
        raise ValidationError("months must be between 1 and 12")
    return month_trend(db, months, year, month)
