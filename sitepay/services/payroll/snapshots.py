"""Monthly salary snapshots (payslips) and their issued -> approved -> paid workflow."""
import logging
from datetime import datetime, timezone
from typing import Iterable, List

from sqlalchemy.orm import Session

from sitepay.core.config import settings
from sitepay.core.enums import SnapshotStatus
from sitepay.core.exceptions import InvalidTransitionError, ValidationError
from sitepay.db.models.snapshot import SalarySnapshot
from sitepay.db.models.user import User
from sitepay.services.payroll.monthly import build_monthly_salary, month_bounds, month_work_records
from sitepay.services.payroll.tax import CATEGORIES, TAX_NAMES

logger = logging.getLogger(__name__)

NEXT_STATUS = {
    SnapshotStatus.ISSUED.value: SnapshotStatus.APPROVED.value,
    SnapshotStatus.APPROVED.value: SnapshotStatus.PAID.value,
}


def transition(snapshot: SalarySnapshot, target: str, actor: User) -> bool:
    """Move ``snapshot`` to ``target``. False when it is already there."""
    if snapshot.status == target:
        return False
    if NEXT_STATUS.get(snapshot.status) != target:
        raise InvalidTransitionError(snapshot.status, target)

    now = datetime.now(timezone.utc)
    snapshot.status = target
    payload = dict(snapshot.payload or {})
    payload["status"] = target
    if target == SnapshotStatus.APPROVED.value:
        snapshot.approved_at = now
        snapshot.approved_by_id = actor.id
        payload["approved_at"] = now.isoformat()
    elif target == SnapshotStatus.PAID.value:
        snapshot.paid_at = now
        snapshot.paid_by_id = actor.id
        payload["paid_at"] = now.isoformat()
    snapshot.payload = payload
    return True


def publish_snapshots(db: Session, year: int, month: int, user_ids: Iterable[int], issuer: User) -> dict:
    """Issue or refresh snapshots for ``user_ids``.

    Missing snapshots are inserted, issued ones are recomputed in place,
    approved and paid ones are never modified. Workers with no work in the
    month are skipped.
    """
    month_bounds(year, month)
    user_ids = list(dict.fromkeys(int(uid) for uid in user_ids))
    if not user_ids:
        raise ValidationError("No workers selected")

    result = {"inserted": 0, "updated": 0, "locked": 0, "skipped": 0}
    workers = {u.id: u for u in db.query(User).filter(User.id.in_(user_ids)).all()}
    existing = {
        s.worker_id: s for s in db.query(SalarySnapshot).filter(
            SalarySnapshot.year == year,
            SalarySnapshot.month == month,
            SalarySnapshot.worker_id.in_(user_ids)
        ).all()
    }
    records_by_worker = {}
    for record in month_work_records(db, year, month, worker_ids=user_ids):
        records_by_worker.setdefault(record.user_id, []).append(record)

    now = datetime.now(timezone.utc)
    for uid in user_ids:
        worker = workers.get(uid)
        records = records_by_worker.get(uid, [])
        if not worker or not records:
            result["skipped"] += 1
            continue

        snapshot = existing.get(uid)
        if snapshot and snapshot.status != SnapshotStatus.ISSUED.value:
            result["locked"] += 1
            continue

        payload = build_monthly_salary(db, worker, year, month, records=records)
        payload.update({
            "status": SnapshotStatus.ISSUED.value,
            "snapshot_version": settings.SNAPSHOT_VERSION,
            "template_version": settings.TEMPLATE_VERSION,
            "issued_at": now.isoformat(),
            "issuer_id": issuer.id,
        })

        if snapshot is None:
            snapshot = SalarySnapshot(worker_id=uid, year=year, month=month, status=SnapshotStatus.ISSUED.value)
            db.add(snapshot)
            result["inserted"] += 1
        else:
            result["updated"] += 1

        snapshot.employment_type = payload["employment_type"]
        snapshot.daily_rate = payload["daily_rate"]
        snapshot.snapshot_version = settings.SNAPSHOT_VERSION
        snapshot.template_version = settings.TEMPLATE_VERSION
        snapshot.payload = payload
        snapshot.issued_at = now
        snapshot.issuer_id = issuer.id

    db.commit()
    logger.info("Published snapshots for %d-%02d: %s", year, month, result)
    return result


def transition_snapshots(db: Session, entries: List[dict], target: str, actor: User) -> dict:
    """Apply ``target`` to each (user_id, year, month) entry; one bad entry does not stop the batch."""
    result = {"updated": 0, "unchanged": 0, "invalid": 0, "missing": 0, "snapshot_ids": []}
    for entry in entries:
        snapshot = db.query(SalarySnapshot).filter(
            SalarySnapshot.worker_id == entry["user_id"],
            SalarySnapshot.year == entry["year"],
            SalarySnapshot.month == entry["month"]
        ).first()
        if not snapshot:
            result["missing"] += 1
            continue
        try:
            changed = transition(snapshot, target, actor)
        except InvalidTransitionError as e:
            logger.warning("Snapshot %s: %s", snapshot.id, e)
            result["invalid"] += 1
            continue
        if changed:
            result["updated"] += 1
            result["snapshot_ids"].append(snapshot.id)
        else:
            result["unchanged"] += 1

    db.commit()
    return result


def snapshot_to_dict(snapshot: SalarySnapshot) -> dict:
    salary = (snapshot.payload or {}).get("salary", {})
    return {
        "id": snapshot.id,
        "worker_id": snapshot.worker_id,
        "worker_name": snapshot.worker.display_name if snapshot.worker else None,
        "year": snapshot.year,
        "month": snapshot.month,
        "month_label": snapshot.month_label,
        "status": snapshot.status,
        "employment_type": snapshot.employment_type,
        "daily_rate": snapshot.daily_rate,
        "total_gross_pay": salary.get("total_gross_pay", 0),
        "total_deductions": salary.get("total_deductions", 0),
        "net_pay": salary.get("net_pay", 0),
        "issued_at": snapshot.issued_at.isoformat() if snapshot.issued_at else None,
        "approved_at": snapshot.approved_at.isoformat() if snapshot.approved_at else None,
        "paid_at": snapshot.paid_at.isoformat() if snapshot.paid_at else None,
    }


def payslip_context(snapshot: SalarySnapshot) -> dict:
    """Values the payslip statement and the payslip email render."""
    payload = snapshot.payload or {}
    salary = payload.get("salary", {})
    rates = payload.get("rates", {})
    deductions = [
        {"name": TAX_NAMES[c], "rate": rates.get(c, 0), "amount": salary.get(c, 0)}
        for c in CATEGORIES
        if salary.get(c)
    ]
    return {
        "worker_name": payload.get("worker_name") or (snapshot.worker.display_name if snapshot.worker else ""),
        "month_label": snapshot.month_label,
        "status": snapshot.status,
        "employment_type": snapshot.employment_type,
        "daily_rate": snapshot.daily_rate or 0,
        "period_start": salary.get("period_start"),
        "period_end": salary.get("period_end"),
        "work_days": salary.get("work_days", 0),
        "total_labor_hours": salary.get("total_labor_hours", 0),
        "base_pay": salary.get("base_pay", 0),
        "total_gross_pay": salary.get("total_gross_pay", 0),
        "deductions": deductions,
        "total_deductions": salary.get("total_deductions", 0),
        "net_pay": salary.get("net_pay", 0),
        "issued_at": snapshot.issued_at,
        "template_version": snapshot.template_version,
    }
