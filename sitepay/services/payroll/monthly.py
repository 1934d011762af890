import calendar
import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from sitepay.core.config import settings
from sitepay.core.exceptions import ValidationError
from sitepay.db.models.salary_setting import WorkerSalarySetting
from sitepay.db.models.user import User
from sitepay.db.models.work_record import WorkRecord
from sitepay.services.payroll.calculator import aggregate_month
from sitepay.services.payroll.tax import CATEGORIES, compute_deductions, resolve_rates, round_half_up

logger = logging.getLogger(__name__)


def month_bounds(year: int, month: int):
    if not 1 <= month <= 12:
        raise ValidationError("Month must be between 1 and 12")
    if year < 2000 or year > 2100:
        raise ValidationError("Year is out of range")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def shift_month(year: int, month: int, delta: int):
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def effective_setting(db: Session, worker_id: int, on_date: Optional[date] = None) -> Optional[WorkerSalarySetting]:
    """Active setting in force on ``on_date``, else the newest active one."""
    query = db.query(WorkerSalarySetting).filter(
        WorkerSalarySetting.worker_id == worker_id,
        WorkerSalarySetting.is_active == True
    )
    if on_date:
        in_force = query.filter(WorkerSalarySetting.effective_date <= on_date)\
            .order_by(WorkerSalarySetting.effective_date.desc(), WorkerSalarySetting.id.desc())\
            .first()
        if in_force:
            return in_force
    return query.order_by(WorkerSalarySetting.effective_date.desc(), WorkerSalarySetting.id.desc()).first()


def pay_terms(db: Session, worker: User, on_date: Optional[date] = None):
    """(employment_type, daily_rate, custom_rates, has_setting) for a worker."""
    setting = effective_setting(db, worker.id, on_date)
    if setting:
        return setting.employment_type, float(setting.daily_rate), setting.custom_tax_rates, True
    employment_type = worker.employment_type or settings.DEFAULT_EMPLOYMENT_TYPE
    daily_rate = worker.daily_wage or settings.DEFAULT_DAILY_RATE
    return employment_type, float(daily_rate), None, False


def month_work_records(db: Session, year: int, month: int, worker_ids=None, site_id: Optional[int] = None):
    start, end = month_bounds(year, month)
    query = db.query(WorkRecord).filter(WorkRecord.work_date >= start, WorkRecord.work_date <= end)
    if worker_ids is not None:
        query = query.filter(WorkRecord.user_id.in_(list(worker_ids)))
    if site_id:
        query = query.filter(WorkRecord.site_id == site_id)
    return query.order_by(WorkRecord.work_date, WorkRecord.id).all()


def build_monthly_salary(db: Session, worker: User, year: int, month: int, records=None) -> dict:
    """Monthly payslip payload for one worker, computed from work records."""
    start, end = month_bounds(year, month)
    if records is None:
        records = month_work_records(db, year, month, worker_ids=[worker.id])

    employment_type, daily_rate, custom_rates, has_setting = pay_terms(db, worker, end)
    if not has_setting:
        logger.warning("Worker %s has no salary setting, using fallback rate %s", worker.id, daily_rate)

    totals = aggregate_month(records)
    rates = resolve_rates(db, employment_type, custom_rates)
    base_pay = round_half_up(Decimal(str(daily_rate)) * Decimal(str(totals["total_labor_hours"])))
    deductions = compute_deductions(base_pay, rates)
    total_deductions = deductions.pop("total")

    salary = {
        "work_days": totals["work_days"],
        "total_labor_hours": totals["total_labor_hours"],
        "total_work_hours": totals["total_work_hours"],
        "total_overtime_hours": totals["total_overtime_hours"],
        "base_pay": base_pay,
        "total_gross_pay": base_pay,
        "tax_deduction": deductions["income_tax"] + deductions["resident_tax"],
        "total_deductions": total_deductions,
        "net_pay": base_pay - total_deductions,
        "period_start": start.isoformat(),
        "period_end": end.isoformat(),
    }
    for category in CATEGORIES:
        salary[category] = deductions[category]

    return {
        "worker_id": worker.id,
        "worker_name": worker.display_name,
        "year": year,
        "month": month,
        "month_label": f"{year}-{month:02d}",
        "employment_type": employment_type,
        "daily_rate": daily_rate,
        "has_salary_setting": has_setting,
        "site_count": totals["site_count"],
        "work_days": totals["work_days"],
        "total_labor_hours": totals["total_labor_hours"],
        "work_dates": totals["work_dates"],
        "rates": rates,
        "salary": salary,
    }
