"""Monthly payroll dashboards.

Published snapshots are the source of truth for a month. A month with no
snapshots at all is estimated from work records, settings and tax rates,
and reported with ``source = "fallback"``.
"""
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from sitepay.db.models.snapshot import SalarySnapshot
from sitepay.db.models.user import User
from sitepay.services.payroll.monthly import build_monthly_salary, month_bounds, month_work_records, shift_month

SOURCE_SNAPSHOTS = "snapshots"
SOURCE_FALLBACK = "fallback"


def _group_by_worker(records):
    grouped = {}
    for r in records:
        grouped.setdefault(r.user_id, []).append(r)
    return grouped


def month_totals(db: Session, year: int, month: int) -> dict:
    month_bounds(year, month)
    snapshots = db.query(SalarySnapshot).filter(SalarySnapshot.year == year, SalarySnapshot.month == month).all()

    totals = {"count": 0, "gross": 0, "deductions": 0, "net": 0}
    if snapshots:
        for s in snapshots:
            salary = (s.payload or {}).get("salary", {})
            totals["count"] += 1
            totals["gross"] += salary.get("total_gross_pay", 0)
            totals["deductions"] += salary.get("total_deductions", 0)
            totals["net"] += salary.get("net_pay", 0)
        return {"data": totals, "source": SOURCE_SNAPSHOTS}

    grouped = _group_by_worker(month_work_records(db, year, month))
    workers = db.query(User).filter(User.id.in_(list(grouped))).all() if grouped else []
    for worker in workers:
        salary = build_monthly_salary(db, worker, year, month, records=grouped[worker.id])["salary"]
        totals["count"] += 1
        totals["gross"] += salary["total_gross_pay"]
        totals["deductions"] += salary["total_deductions"]
        totals["net"] += salary["net_pay"]
    return {"data": totals, "source": SOURCE_FALLBACK}


def worker_rows(
    db: Session,
    year: int,
    month: int,
    employment_type: Optional[str] = None,
    site_id: Optional[int] = None,
    worker_ids=None,
) -> list:
    """One row per worker with work in the month; a site filter keeps workers who worked there."""
    records = month_work_records(db, year, month, worker_ids=worker_ids)
    grouped = _group_by_worker(records)
    if site_id:
        grouped = {uid: rs for uid, rs in grouped.items() if any(r.site_id == site_id for r in rs)}
    if not grouped:
        return []

    snapshots = {
        s.worker_id: s for s in db.query(SalarySnapshot).filter(
            SalarySnapshot.year == year,
            SalarySnapshot.month == month,
            SalarySnapshot.worker_id.in_(list(grouped))
        ).all()
    }

    rows = []
    for worker in db.query(User).filter(User.id.in_(list(grouped))).all():
        snapshot = snapshots.get(worker.id)
        if snapshot:
            payload = snapshot.payload or {}
        else:
            payload = build_monthly_salary(db, worker, year, month, records=grouped[worker.id])
        if employment_type and payload.get("employment_type") != employment_type:
            continue
        salary = payload.get("salary", {})
        rows.append({
            "worker_id": worker.id,
            "name": worker.display_name,
            "employment_type": payload.get("employment_type"),
            "daily_rate": payload.get("daily_rate"),
            "total_labor_hours": payload.get("total_labor_hours", 0),
            "total_gross_pay": salary.get("total_gross_pay", 0),
            "net_pay": salary.get("net_pay", 0),
            "snapshot_status": snapshot.status if snapshot else None,
            "site_ids": sorted({r.site_id for r in grouped[worker.id]}),
        })
    rows.sort(key=lambda r: (r["name"] or "").lower())
    return rows


def month_trend(db: Session, months: int = 3, year: Optional[int] = None, month: Optional[int] = None) -> list:
    """Totals for the last ``months`` months ending at (year, month), oldest first."""
    if year is None or month is None:
        today = date.today()
        year, month = today.year, today.month
    trend = []
    for offset in range(months - 1, -1, -1):
        y, m = shift_month(year, month, -offset)
        totals = month_totals(db, y, m)
        trend.append({"month": f"{y}-{m:02d}", **totals["data"], "source": totals["source"]})
    return trend
