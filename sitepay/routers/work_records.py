from datetime import date
from typing import Optional

import pydantic
from fastapi import APIRouter, Depends, HTTPException, status, Body
from sqlalchemy.orm import Session

from sitepay.core.config import settings
from sitepay.core.enums import Role
from sitepay.db.models.site import Site
from sitepay.db.models.user import User
from sitepay.db.models.work_record import WorkRecord
from sitepay.routers import deps
from sitepay.services.payroll.calculator import labor_hours_of
from sitepay.utils.activity import log_activity

router = APIRouter(
    prefix="/work-records",
    tags=["work-records"],
    dependencies=[Depends(deps.get_current_user)]
)

class WorkRecordIn(pydantic.BaseModel):
    user_id: int
    site_id: int
    work_date: date
    labor_hours: Optional[float] = None
    work_hours: Optional[float] = None
    check_in_time: Optional[str] = None
    check_out_time: Optional[str] = None
    notes: Optional[str] = None

def record_to_dict(r: WorkRecord) -> dict:
    return {
        "id": r.id,
        "user_id": r.user_id,
        "worker_name": r.user.display_name if r.user else None,
        "site_id": r.site_id,
        "site_name": r.site.name if r.site else None,
        "work_date": r.work_date.isoformat(),
        "labor_hours": labor_hours_of(r),
        "work_hours": r.work_hours,
        "overtime_hours": r.overtime_hours,
        "check_in_time": r.check_in_time,
        "check_out_time": r.check_out_time,
        "status": r.status,
        "notes": r.notes
    }

def check_site_access(user: User, site_id: int):
    if deps.is_admin(user):
        return
    if user.role == Role.SITE_MANAGER.value and site_id in deps.managed_site_ids(user):
        return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Site not assigned to you")

@router.post("/")
async def save_work_record(
    data: WorkRecordIn = Body(...),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    check_site_access(user, data.site_id)

    if data.labor_hours is None and data.work_hours is None:
        raise HTTPException(status_code=400, detail="labor_hours or work_hours is required")
    if (data.labor_hours or 0) < 0 or (data.work_hours or 0) < 0:
        raise HTTPException(status_code=400, detail="Hours cannot be negative")

    if not db.query(Site).filter(Site.id == data.site_id).first():
        raise HTTPException(status_code=404, detail="Site not found")
    if not db.query(User).filter(User.id == data.user_id).first():
        raise HTTPException(status_code=404, detail="Worker not found")

    per_day = settings.HOURS_PER_MAN_DAY
    labor_hours = data.labor_hours if data.labor_hours is not None else data.work_hours / per_day
    work_hours = data.work_hours if data.work_hours is not None else labor_hours * per_day

    # One record per worker, site and day: saving again replaces it
    record = db.query(WorkRecord).filter(
        WorkRecord.user_id == data.user_id,
        WorkRecord.site_id == data.site_id,
        WorkRecord.work_date == data.work_date
    ).first()
    created = record is None
    if created:
        record = WorkRecord(user_id=data.user_id, site_id=data.site_id, work_date=data.work_date)
        db.add(record)

    record.labor_hours = round(labor_hours, 4)
    record.work_hours = round(work_hours, 2)
    record.overtime_hours = round(max(0.0, work_hours - per_day), 2)
    record.check_in_time = data.check_in_time
    record.check_out_time = data.check_out_time
    record.notes = data.notes
    record.assigned_by_id = user.id
    db.commit()

    log_activity(db, user, "CREATE" if created else "UPDATE", "WORK_RECORD", record.id,
                 f"Worker {data.user_id} site {data.site_id} {data.work_date}: {record.labor_hours} man-days")

    return {"status": "success", "message": "Work record saved", "record": record_to_dict(record)}

@router.get("/")
async def list_work_records(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    site_id: Optional[int] = None,
    user_id: Optional[int] = None,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    query = db.query(WorkRecord)

    if deps.is_admin(user):
        pass
    elif user.role == Role.SITE_MANAGER.value:
        site_ids = deps.managed_site_ids(user)
        if site_id and site_id not in site_ids:
            raise HTTPException(status_code=403, detail="Site not assigned to you")
        query = query.filter(WorkRecord.site_id.in_(site_ids))
    elif user.role == Role.WORKER.value:
        query = query.filter(WorkRecord.user_id == user.id)
    else:
        raise HTTPException(status_code=403, detail="Not authorized")

    if start_date:
        query = query.filter(WorkRecord.work_date >= start_date)
    if end_date:
        query = query.filter(WorkRecord.work_date <= end_date)
    if site_id:
        query = query.filter(WorkRecord.site_id == site_id)
    if user_id:
        query = query.filter(WorkRecord.user_id == user_id)

    records = query.order_by(WorkRecord.work_date.desc(), WorkRecord.user_id).all()
    return [record_to_dict(r) for r in records]

@router.delete("/{id}")
async def delete_work_record(
    id: int,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    record = db.query(WorkRecord).filter(WorkRecord.id == id).first()
    if not record:
        raise HTTPException(status_code=404, detail="Work record not found")

    check_site_access(user, record.site_id)

    details = f"Worker {record.user_id} {record.work_date}"
    db.delete(record)
    db.commit()

    log_activity(db, user, "DELETE", "WORK_RECORD", id, details)

    return {"status": "success", "message": "Work record deleted"}
