from collections import OrderedDict
from datetime import date
from decimal import Decimal
from math import ceil
from typing import List, Optional

import pydantic
from fastapi import APIRouter, Depends, HTTPException, Body
from sqlalchemy.orm import Session

from sitepay.core.config import settings
from sitepay.core.enums import RecordStatus
from sitepay.core.exceptions import NotFoundError
from sitepay.db.models.salary_record import SalaryRecord
from sitepay.db.models.user import User
from sitepay.routers import deps
from sitepay.services.payroll.calculator import aggregate_month, calculate_individual_salary
from sitepay.services.payroll.monthly import effective_setting, month_bounds, month_work_records, pay_terms
from sitepay.services.payroll.records import (
    advance_records,
    calculate_salary_records,
    monthly_record_summary,
    record_to_dict,
    salary_stats,
    save_personal_record,
)
from sitepay.services.payroll.tax import resolve_rates, round_half_up
from sitepay.utils.activity import log_activity

router = APIRouter(
    prefix="/payroll",
    tags=["payroll"],
    dependencies=[Depends(deps.get_current_user)]
)

class PersonalCalculationIn(pydantic.BaseModel):
    worker_id: int
    work_date: date
    labor_hours: float
    additional_deductions: float = 0.0

class PersonalRecordIn(PersonalCalculationIn):
    site_id: Optional[int] = None
    notes: Optional[str] = None

class CalculateIn(pydantic.BaseModel):
    site_id: Optional[int] = None
    worker_id: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

def _personal_calculation(db: Session, data: PersonalCalculationIn):
    setting = effective_setting(db, data.worker_id, data.work_date)
    if not setting:
        raise NotFoundError("Worker has no salary setting")

    rates = resolve_rates(db, setting.employment_type, setting.custom_tax_rates)
    return calculate_individual_salary(
        data.worker_id,
        setting.employment_type,
        setting.daily_rate,
        data.labor_hours,
        rates,
        additional_deductions=data.additional_deductions
    )

# -----------------------------------------------------------------------------
# 1. PERSONAL CALCULATIONS
# -----------------------------------------------------------------------------

@router.post("/calculate/personal")
async def calculate_personal(
    data: PersonalCalculationIn = Body(...),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    calculation = _personal_calculation(db, data)
    return {
        "status": "success",
        "work_date": data.work_date.isoformat(),
        "calculation": calculation.to_dict()
    }

@router.post("/records/personal")
async def save_personal(
    data: PersonalRecordIn = Body(...),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    calculation = _personal_calculation(db, data)
    record = save_personal_record(db, calculation, data.work_date, site_id=data.site_id, notes=data.notes)

    log_activity(db, user, "CREATE", "SALARY_RECORD", record.id,
                 f"Worker {data.worker_id} {data.work_date}: net {calculation.net_pay}")

    return {"status": "success", "message": "Salary record saved", "record": record_to_dict(record)}

@router.get("/personal/monthly")
async def personal_monthly(
    worker_id: int,
    year: int,
    month: int,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    if not deps.is_admin(user) and user.id != worker_id:
        raise HTTPException(status_code=403, detail="Not authorized")

    start, end = month_bounds(year, month)
    records = db.query(SalaryRecord).filter(
        SalaryRecord.worker_id == worker_id,
        SalaryRecord.work_date >= start,
        SalaryRecord.work_date <= end
    ).order_by(SalaryRecord.work_date).all()

    summary = monthly_record_summary(records, settings.DEFAULT_EMPLOYMENT_TYPE)
    summary["records"] = [record_to_dict(r) for r in records]
    return summary

# -----------------------------------------------------------------------------
# 2. DAILY SALARY RECORDS
# -----------------------------------------------------------------------------

@router.post("/calculate")
async def calculate_salaries(
    data: CalculateIn = Body(...),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    count = calculate_salary_records(db, data.site_id, data.worker_id, data.date_from, data.date_to)

    log_activity(db, user, "CALCULATE", "SALARY_RECORD", None,
                 f"{count} records (site {data.site_id}, worker {data.worker_id}, {data.date_from}..{data.date_to})")

    return {"status": "success", "message": f"{count} salary records calculated", "calculated_records": count}

@router.get("/records")
async def list_records(
    page: int = 1,
    limit: int = 20,
    search: str = "",
    status: Optional[str] = None,
    site_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)
    page = max(page, 1)
    limit = max(1, min(limit, 100))

    query = db.query(SalaryRecord).join(User, SalaryRecord.worker_id == User.id)
    if search.strip():
        query = query.filter(User.full_name.ilike(f"%{search.strip()}%"))
    if status:
        query = query.filter(SalaryRecord.status == status)
    if site_id:
        query = query.filter(SalaryRecord.site_id == site_id)
    if date_from:
        query = query.filter(SalaryRecord.work_date >= date_from)
    if date_to:
        query = query.filter(SalaryRecord.work_date <= date_to)

    total = query.count()
    records = query.order_by(SalaryRecord.work_date.desc(), SalaryRecord.id.desc())\
        .offset((page - 1) * limit)\
        .limit(limit)\
        .all()

    return {
        "records": [record_to_dict(r) for r in records],
        "page": page,
        "total": total,
        "pages": ceil(total / limit)
    }

@router.post("/records/approve")
async def approve_records(
    record_ids: List[int] = Body(..., embed=True),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    result = advance_records(db, record_ids, RecordStatus.APPROVED.value)
    log_activity(db, user, "APPROVE", "SALARY_RECORD", None, f"Records {record_ids}: {result}")

    return {"status": "success", "message": f"{result['updated']} records approved", **result}

@router.post("/records/pay")
async def pay_records(
    record_ids: List[int] = Body(..., embed=True),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    result = advance_records(db, record_ids, RecordStatus.PAID.value)
    log_activity(db, user, "PAY", "SALARY_RECORD", None, f"Records {record_ids}: {result}")

    return {"status": "success", "message": f"{result['updated']} records paid", **result}

@router.get("/stats")
async def payroll_stats(
    site_id: Optional[int] = None,
    worker_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    query = db.query(SalaryRecord)
    if site_id:
        query = query.filter(SalaryRecord.site_id == site_id)
    if worker_id:
        query = query.filter(SalaryRecord.worker_id == worker_id)
    if date_from:
        query = query.filter(SalaryRecord.work_date >= date_from)
    if date_to:
        query = query.filter(SalaryRecord.work_date <= date_to)

    return salary_stats(query.all())

@router.get("/output-summary")
async def output_summary(
    year: int,
    month: int,
    site_id: Optional[int] = None,
    worker_id: Optional[int] = None,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    records = month_work_records(
        db, year, month,
        worker_ids=[worker_id] if worker_id else None,
        site_id=site_id
    )
    _, end = month_bounds(year, month)

    grouped = OrderedDict()
    for r in records:
        grouped.setdefault((r.user_id, r.site_id), []).append(r)

    rows = []
    for (uid, sid), group in grouped.items():
        worker = group[0].user
        _, daily_rate, _, has_setting = pay_terms(db, worker, end)
        totals = aggregate_month(group)
        rows.append({
            "worker_id": uid,
            "worker_name": worker.display_name,
            "site_id": sid,
            "site_name": group[0].site.name if group[0].site else None,
            "work_days": totals["work_days"],
            "total_labor_hours": totals["total_labor_hours"],
            "total_work_hours": totals["total_work_hours"],
            "total_overtime_hours": totals["total_overtime_hours"],
            "first_work_date": totals["first_work_date"],
            "last_work_date": totals["last_work_date"],
            "work_dates": totals["work_dates"],
            "daily_rate": daily_rate,
            "has_salary_setting": has_setting,
            "total_pay": round_half_up(Decimal(str(daily_rate)) * Decimal(str(totals["total_labor_hours"]))),
        })

    return {"year": year, "month": month, "rows": rows}
