from datetime import date
from math import ceil
from typing import Any, Dict, List, Optional

import pydantic
from fastapi import APIRouter, Depends, HTTPException, Body
from sqlalchemy import or_
from sqlalchemy.orm import Session

from sitepay.core.config import settings
from sitepay.core.enums import PAYABLE_ROLES, RuleType
from sitepay.db.models.salary_rule import SalaryRule
from sitepay.db.models.salary_setting import WorkerSalarySetting
from sitepay.db.models.tax_rate import EmploymentTaxRate
from sitepay.db.models.user import User
from sitepay.routers import deps
from sitepay.services.payroll.tax import check_custom_rates, check_employment_type, check_rate, seed_default_rates
from sitepay.utils.activity import log_activity

router = APIRouter(
    prefix="/payroll",
    tags=["payroll-settings"],
    dependencies=[Depends(deps.get_current_user)]
)

# -----------------------------------------------------------------------------
# 1. TAX RATES
# -----------------------------------------------------------------------------

@router.get("/tax-rates")
async def list_tax_rates(
    employment_type: Optional[str] = None,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    query = db.query(EmploymentTaxRate).filter(EmploymentTaxRate.is_active == True)
    if employment_type:
        query = query.filter(EmploymentTaxRate.employment_type == employment_type)
    rates = query.order_by(EmploymentTaxRate.employment_type, EmploymentTaxRate.tax_name).all()

    return [{
        "id": r.id,
        "employment_type": r.employment_type,
        "tax_category": r.tax_category,
        "tax_name": r.tax_name,
        "rate": r.rate,
        "description": r.description,
    } for r in rates]

@router.patch("/tax-rates/{rate_id}")
async def update_tax_rate(
    rate_id: int,
    rate: float = Body(..., embed=True),
    description: Optional[str] = Body(None, embed=True),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)
    check_rate(rate)

    tax_rate = db.query(EmploymentTaxRate).filter(EmploymentTaxRate.id == rate_id).first()
    if not tax_rate:
        raise HTTPException(status_code=404, detail="Tax rate not found")

    old_rate = tax_rate.rate
    tax_rate.rate = rate
    if description is not None:
        tax_rate.description = description
    db.commit()

    log_activity(db, user, "UPDATE", "TAX_RATE", rate_id,
                 f"{tax_rate.employment_type}/{tax_rate.tax_category}: {old_rate} -> {rate}")

    return {"status": "success", "message": "Tax rate updated"}

@router.post("/tax-rates/seed")
async def seed_tax_rates(db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    deps.check_admin(user)
    inserted = seed_default_rates(db)
    if inserted:
        log_activity(db, user, "SEED", "TAX_RATE", None, f"Inserted {inserted} default rates")
    return {"status": "success", "message": f"{inserted} tax rates inserted", "inserted": inserted}

# -----------------------------------------------------------------------------
# 2. WORKER SALARY SETTINGS
# -----------------------------------------------------------------------------

class SalarySettingIn(pydantic.BaseModel):
    worker_id: int
    employment_type: str
    daily_rate: float
    custom_tax_rates: Optional[Dict[str, float]] = None
    bank_account_info: Optional[Dict[str, Any]] = None
    effective_date: Optional[date] = None
    notes: Optional[str] = None

def setting_to_dict(s: WorkerSalarySetting) -> dict:
    return {
        "id": s.id,
        "worker_id": s.worker_id,
        "worker_name": s.worker.display_name if s.worker else None,
        "employment_type": s.employment_type,
        "daily_rate": s.daily_rate,
        "hourly_rate": s.hourly_rate,
        "custom_tax_rates": s.custom_tax_rates,
        "bank_account_info": s.bank_account_info,
        "effective_date": s.effective_date.isoformat(),
        "is_active": s.is_active,
        "notes": s.notes,
    }

@router.get("/salary-settings")
async def list_salary_settings(
    worker_id: Optional[int] = None,
    employment_type: Optional[str] = None,
    active_only: bool = True,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    query = db.query(WorkerSalarySetting)
    if worker_id:
        query = query.filter(WorkerSalarySetting.worker_id == worker_id)
    if employment_type:
        query = query.filter(WorkerSalarySetting.employment_type == employment_type)
    if active_only:
        query = query.filter(WorkerSalarySetting.is_active == True)

    settings_list = query.order_by(WorkerSalarySetting.effective_date.desc(), WorkerSalarySetting.id.desc()).all()
    return [setting_to_dict(s) for s in settings_list]

@router.post("/salary-settings")
async def set_salary_setting(
    data: SalarySettingIn = Body(...),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    check_employment_type(data.employment_type)
    if data.daily_rate <= 0:
        raise HTTPException(status_code=400, detail="Daily rate must be greater than zero")
    custom_rates = check_custom_rates(data.custom_tax_rates)

    worker = db.query(User).filter(User.id == data.worker_id).first()
    if not worker:
        raise HTTPException(status_code=404, detail="Worker not found")

    # Only one active setting per worker
    db.query(WorkerSalarySetting).filter(
        WorkerSalarySetting.worker_id == data.worker_id,
        WorkerSalarySetting.is_active == True
    ).update({"is_active": False}, synchronize_session=False)

    setting = WorkerSalarySetting(
        worker_id=data.worker_id,
        employment_type=data.employment_type,
        daily_rate=data.daily_rate,
        hourly_rate=round(data.daily_rate / settings.HOURS_PER_MAN_DAY, 2),
        custom_tax_rates=custom_rates,
        bank_account_info=data.bank_account_info,
        effective_date=data.effective_date or date.today(),
        is_active=True,
        notes=data.notes,
        created_by_id=user.id
    )
    db.add(setting)
    db.commit()

    log_activity(db, user, "UPDATE", "SALARY_SETTING", setting.id,
                 f"Worker {data.worker_id}: {data.employment_type} @ {data.daily_rate}")

    return {"status": "success", "message": "Salary setting saved", "setting_id": setting.id}

@router.get("/salary-settings/workers")
async def workers_for_salary_settings(
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    workers = db.query(User).filter(
        User.role.in_(PAYABLE_ROLES),
        or_(User.status == None, User.status != "inactive")
    ).order_by(User.full_name).all()

    active = {
        s.worker_id: s for s in db.query(WorkerSalarySetting).filter(
            WorkerSalarySetting.is_active == True,
            WorkerSalarySetting.worker_id.in_([w.id for w in workers])
        ).all()
    } if workers else {}

    data = []
    for w in workers:
        s = active.get(w.id)
        data.append({
            "id": w.id,
            "full_name": w.full_name,
            "email": w.email,
            "role": w.role,
            "has_salary_setting": s is not None,
            "employment_type": s.employment_type if s else None,
            "daily_rate": s.daily_rate if s else None,
        })
    return data

# -----------------------------------------------------------------------------
# 3. SALARY CALCULATION RULES
# -----------------------------------------------------------------------------

class SalaryRuleIn(pydantic.BaseModel):
    id: Optional[int] = None
    rule_name: Optional[str] = None
    rule_type: Optional[str] = None
    base_amount: Optional[float] = None
    multiplier: Optional[float] = None
    conditions: Optional[Dict[str, Any]] = None
    site_id: Optional[Any] = None
    role: Optional[str] = None
    is_active: bool = True

def rule_to_dict(r: SalaryRule) -> dict:
    return {
        "id": r.id,
        "rule_name": r.rule_name,
        "rule_type": r.rule_type,
        "base_amount": r.base_amount,
        "multiplier": r.multiplier,
        "conditions": r.conditions,
        "site_id": r.site_id,
        "role": r.role,
        "is_active": r.is_active,
    }

@router.get("/rules")
async def list_rules(
    page: int = 1,
    limit: int = 10,
    search: str = "",
    rule_type: Optional[str] = None,
    site_id: Optional[int] = None,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)
    page = max(page, 1)
    limit = max(1, min(limit, 100))

    query = db.query(SalaryRule)
    if search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(or_(SalaryRule.rule_name.ilike(term), SalaryRule.rule_type.ilike(term)))
    if rule_type:
        query = query.filter(SalaryRule.rule_type == rule_type)
    if site_id:
        # Global rules apply to every site
        query = query.filter(or_(SalaryRule.site_id == site_id, SalaryRule.site_id == None))

    total = query.count()
    rules = query.order_by(SalaryRule.created_at.desc(), SalaryRule.id.desc())\
        .offset((page - 1) * limit)\
        .limit(limit)\
        .all()

    return {"rules": [rule_to_dict(r) for r in rules], "total": total, "pages": ceil(total / limit)}

@router.post("/rules")
async def upsert_rule(
    data: SalaryRuleIn = Body(...),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    if not (data.rule_name or "").strip():
        raise HTTPException(status_code=400, detail="rule_name is required")
    if not data.rule_type:
        raise HTTPException(status_code=400, detail="rule_type is required")
    if data.rule_type not in [t.value for t in RuleType]:
        raise HTTPException(status_code=400, detail=f"Unknown rule type: {data.rule_type}")
    if data.base_amount is None or data.base_amount < 0:
        raise HTTPException(status_code=400, detail="base_amount must be a number >= 0")
    # Empty strings from forms mean "any"
    site_id = None
    if data.site_id not in (None, ""):
        try:
            site_id = int(data.site_id)
        except (TypeError, ValueError):
            raise HTTPException(status_code=400, detail="site_id must be a number")

    if data.id:
        rule = db.query(SalaryRule).filter(SalaryRule.id == data.id).first()
        if not rule:
            raise HTTPException(status_code=404, detail="Rule not found")
        action = "UPDATE"
    else:
        rule = SalaryRule()
        db.add(rule)
        action = "CREATE"

    rule.rule_name = data.rule_name.strip()
    rule.rule_type = data.rule_type
    rule.base_amount = float(data.base_amount)
    rule.multiplier = float(data.multiplier) if data.multiplier else None
    rule.conditions = data.conditions
    rule.site_id = site_id
    rule.role = data.role or None
    rule.is_active = data.is_active
    db.commit()

    log_activity(db, user, action, "SALARY_RULE", rule.id, f"{rule.rule_type}: {rule.rule_name}")

    message = "Salary rule updated" if action == "UPDATE" else "Salary rule created"
    return {"status": "success", "message": message, "rule": rule_to_dict(rule)}

@router.post("/rules/delete")
async def delete_rules(
    rule_ids: List[int] = Body(..., embed=True),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    deps.check_admin(user)

    deleted = db.query(SalaryRule).filter(SalaryRule.id.in_(rule_ids)).delete(synchronize_session=False)
    db.commit()

    log_activity(db, user, "DELETE", "SALARY_RULE", None, f"Deleted rules {rule_ids}")

    return {"status": "success", "message": f"{deleted} salary rules deleted", "deleted": deleted}
