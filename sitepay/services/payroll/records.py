"""Per-day salary records derived from work records and salary rules."""
import logging
from collections import OrderedDict
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from sitepay.core.enums import RecordStatus
from sitepay.core.exceptions import ValidationError
from sitepay.db.models.salary_record import SalaryRecord
from sitepay.db.models.salary_rule import SalaryRule
from sitepay.db.models.work_record import WorkRecord
from sitepay.services.payroll.calculator import SalaryCalculation, calculate_daily_pay, labor_hours_of, split_hours
from sitepay.services.payroll.monthly import pay_terms

logger = logging.getLogger(__name__)

RECORD_NEXT_STATUS = {
    RecordStatus.CALCULATED.value: RecordStatus.APPROVED.value,
    RecordStatus.APPROVED.value: RecordStatus.PAID.value,
}


def calculate_salary_records(
    db: Session,
    site_id: Optional[int] = None,
    worker_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> int:
    """Rebuild ``calculated`` records for the scope. Returns how many were written.

    Hours a worker logged on several sites the same day are summed into one
    record filed under the first site seen. Approved or paid records are
    never replaced.
    """
    date_from = date_from or date.today()
    date_to = date_to or date_from
    if date_from > date_to:
        raise ValidationError("date_from must not be after date_to")

    query = db.query(WorkRecord).filter(WorkRecord.work_date >= date_from, WorkRecord.work_date <= date_to)
    if worker_id:
        query = query.filter(WorkRecord.user_id == worker_id)
    work_records = query.order_by(WorkRecord.work_date, WorkRecord.id).all()

    # A site scope picks the worker-days; their hours still come from every site
    keys = {(wr.user_id, wr.work_date) for wr in work_records if not site_id or wr.site_id == site_id}

    grouped = OrderedDict()
    for wr in work_records:
        key = (wr.user_id, wr.work_date)
        if key not in keys:
            continue
        labor = labor_hours_of(wr)
        if labor <= 0:
            continue
        if key in grouped:
            grouped[key]["labor_hours"] += labor
        else:
            grouped[key] = {"site_id": wr.site_id, "labor_hours": labor, "user": wr.user}

    existing = db.query(SalaryRecord).filter(
        SalaryRecord.work_date >= date_from,
        SalaryRecord.work_date <= date_to
    )
    if worker_id:
        existing = existing.filter(SalaryRecord.worker_id == worker_id)

    finalized = set()
    for record in existing.all():
        key = (record.worker_id, record.work_date)
        if record.status != RecordStatus.CALCULATED.value:
            finalized.add(key)
        elif key in keys or not site_id or record.site_id == site_id:
            db.delete(record)
    db.flush()

    rules = db.query(SalaryRule).filter(SalaryRule.is_active == True).all()
    count = 0
    for (uid, work_date), data in grouped.items():
        if (uid, work_date) in finalized:
            continue
        worker = data["user"]
        employment_type, daily_rate, _, _ = pay_terms(db, worker, work_date)
        pay = calculate_daily_pay(
            data["labor_hours"], rules, data["site_id"], worker.role, default_daily_rate=daily_rate
        )
        db.add(SalaryRecord(
            worker_id=uid,
            site_id=data["site_id"],
            work_date=work_date,
            employment_type=employment_type,
            labor_hours=pay.labor_hours,
            regular_hours=pay.regular_hours,
            overtime_hours=pay.overtime_hours,
            base_pay=pay.base_pay,
            overtime_pay=pay.overtime_pay,
            total_pay=pay.total_pay,
            status=RecordStatus.CALCULATED.value,
            tax_details={"rule_type": pay.rule_type},
            notes=f"Labor hours: {pay.labor_hours}"
        ))
        count += 1

    db.commit()
    logger.info("Calculated %d salary records for %s..%s", count, date_from, date_to)
    return count


def save_personal_record(
    db: Session,
    calculation: SalaryCalculation,
    work_date: date,
    site_id: Optional[int] = None,
    notes: Optional[str] = None,
) -> SalaryRecord:
    regular, overtime = split_hours(calculation.labor_hours)
    d = calculation.deductions
    record = SalaryRecord(
        worker_id=calculation.worker_id,
        site_id=site_id,
        work_date=work_date,
        employment_type=calculation.employment_type,
        labor_hours=calculation.labor_hours,
        regular_hours=regular,
        overtime_hours=overtime,
        base_pay=calculation.base_pay,
        deductions=d.get("other_deductions", 0),
        income_tax=d.get("income_tax", 0),
        resident_tax=d.get("resident_tax", 0),
        national_pension=d.get("national_pension", 0),
        health_insurance=d.get("health_insurance", 0),
        employment_insurance=d.get("employment_insurance", 0),
        tax_amount=calculation.total_tax,
        total_pay=calculation.net_pay,
        status=RecordStatus.CALCULATED.value,
        tax_details=calculation.tax_details,
        notes=notes
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def advance_records(db: Session, record_ids: List[int], target: str) -> dict:
    """Move records one step forward; records in any other status are skipped."""
    source = next((s for s, t in RECORD_NEXT_STATUS.items() if t == target), None)
    if source is None:
        raise ValidationError(f"Unsupported record status: {target}")

    records = db.query(SalaryRecord).filter(SalaryRecord.id.in_(record_ids)).all()
    updated = 0
    for record in records:
        if record.status == source:
            record.status = target
            updated += 1
    db.commit()
    return {"updated": updated, "skipped": len(record_ids) - updated}


def salary_stats(records: List[SalaryRecord]) -> dict:
    total_workers = len({r.worker_id for r in records})
    pending = sum(1 for r in records if r.status == RecordStatus.CALCULATED.value)
    approved = sum(1 for r in records if r.status == RecordStatus.APPROVED.value)
    total_payroll = sum(r.total_pay or 0 for r in records)
    total_hours = sum((r.regular_hours or 0) + (r.overtime_hours or 0) for r in records)
    overtime_hours = sum(r.overtime_hours or 0 for r in records)

    return {
        "total_workers": total_workers,
        "pending_calculations": pending,
        "approved_payments": approved,
        "total_payroll": total_payroll,
        "average_daily_pay": round(total_payroll / len(records), 2) if records else 0,
        "overtime_percentage": round(overtime_hours / total_hours * 100, 2) if total_hours > 0 else 0,
    }


def monthly_record_summary(records: List[SalaryRecord], default_employment_type: str) -> dict:
    return {
        "total_records": len(records),
        "total_labor_hours": sum(r.labor_hours or 0 for r in records),
        "total_gross_pay": sum((r.base_pay or 0) + (r.overtime_pay or 0) + (r.bonus_pay or 0) for r in records),
        "total_tax": sum(r.tax_amount or 0 for r in records),
        "total_net_pay": sum(r.total_pay or 0 for r in records),
        "employment_type": records[0].employment_type if records and records[0].employment_type else default_employment_type,
    }


def record_to_dict(record: SalaryRecord) -> dict:
    return {
        "id": record.id,
        "worker_id": record.worker_id,
        "worker_name": record.worker.display_name if record.worker else None,
        "site_id": record.site_id,
        "site_name": record.site.name if record.site else None,
        "work_date": record.work_date.isoformat(),
        "employment_type": record.employment_type,
        "labor_hours": record.labor_hours,
        "regular_hours": record.regular_hours,
        "overtime_hours": record.overtime_hours,
        "base_pay": record.base_pay,
        "overtime_pay": record.overtime_pay,
        "bonus_pay": record.bonus_pay,
        "deductions": record.deductions,
        "tax_amount": record.tax_amount,
        "total_pay": record.total_pay,
        "status": record.status,
        "notes": record.notes,
    }
