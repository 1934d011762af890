"""Salary arithmetic over man-days ("labor hours").

One labor hour unit is one working day of ``HOURS_PER_MAN_DAY`` hours, so
1.5 labor hours is twelve actual hours: eight regular and four overtime.
"""
from dataclasses import dataclass, field, asdict
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sitepay.core.config import settings
from sitepay.core.enums import RuleType
from sitepay.core.exceptions import ValidationError
from sitepay.services.payroll.rules import match_rule
from sitepay.services.payroll.tax import CATEGORIES, compute_deductions, round_half_up


@dataclass
class SalaryCalculation:
    worker_id: int
    employment_type: str
    daily_rate: float
    labor_hours: float
    base_pay: int
    gross_pay: int
    deductions: Dict[str, int]
    total_tax: int
    net_pay: int
    tax_details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DailyPay:
    labor_hours: float
    regular_hours: float
    overtime_hours: float
    base_pay: int
    overtime_pay: int
    rule_type: Optional[str] = None

    @property
    def total_pay(self) -> int:
        return self.base_pay + self.overtime_pay


def labor_hours_of(record) -> float:
    """Man-days of a work record; derived from work hours when not entered."""
    if record.labor_hours is not None:
        return float(record.labor_hours)
    return float(record.work_hours or 0.0) / settings.HOURS_PER_MAN_DAY


def split_hours(labor_hours: float):
    actual = labor_hours * settings.HOURS_PER_MAN_DAY
    regular = min(actual, settings.HOURS_PER_MAN_DAY)
    overtime = max(actual - settings.HOURS_PER_MAN_DAY, 0.0)
    return regular, overtime


def calculate_individual_salary(
    worker_id: int,
    employment_type: str,
    daily_rate: float,
    labor_hours: float,
    rates: Dict[str, float],
    additional_deductions: float = 0.0,
) -> SalaryCalculation:
    if labor_hours is None or labor_hours <= 0:
        raise ValidationError("Labor hours must be greater than zero")
    if additional_deductions < 0:
        raise ValidationError("Additional deductions cannot be negative")

    gross = round_half_up(Decimal(str(daily_rate)) * Decimal(str(labor_hours)))
    deductions = compute_deductions(gross, rates)
    other = round_half_up(additional_deductions)
    total_tax = deductions.pop("total") + other
    deductions["other_deductions"] = other

    return SalaryCalculation(
        worker_id=worker_id,
        employment_type=employment_type,
        daily_rate=float(daily_rate),
        labor_hours=float(labor_hours),
        base_pay=gross,
        gross_pay=gross,
        deductions=deductions,
        total_tax=total_tax,
        net_pay=gross - total_tax,
        tax_details={
            "rates": {c: rates.get(c, 0.0) for c in CATEGORIES},
            "labor_hours": float(labor_hours),
            "additional_deductions": other,
        },
    )


def calculate_daily_pay(
    labor_hours: float,
    rules: Iterable,
    site_id: Optional[int],
    role: Optional[str],
    default_daily_rate: Optional[float] = None,
) -> DailyPay:
    """Pay for one worker-day. Daily rules take precedence over hourly ones."""
    rules = list(rules)
    regular, overtime = split_hours(labor_hours)
    default_rate = default_daily_rate if default_daily_rate is not None else settings.DEFAULT_DAILY_RATE

    daily_rule = match_rule(rules, RuleType.DAILY_RATE.value, site_id, role)
    if daily_rule:
        base = round_half_up(Decimal(str(labor_hours)) * Decimal(str(daily_rule.base_amount)))
        return DailyPay(labor_hours, regular, overtime, base, 0, RuleType.DAILY_RATE.value)

    hourly_rule = match_rule(rules, RuleType.HOURLY_RATE.value, site_id, role)
    if hourly_rule:
        rate = Decimal(str(hourly_rule.base_amount))
        overtime_rule = match_rule(rules, RuleType.OVERTIME_MULTIPLIER.value, site_id, role)
        multiplier = settings.OVERTIME_MULTIPLIER
        if overtime_rule and overtime_rule.multiplier:
            multiplier = overtime_rule.multiplier
        base = round_half_up(Decimal(str(regular)) * rate)
        overtime_pay = round_half_up(Decimal(str(overtime)) * rate * Decimal(str(multiplier)))
        return DailyPay(labor_hours, regular, overtime, base, overtime_pay, RuleType.HOURLY_RATE.value)

    base = round_half_up(Decimal(str(labor_hours)) * Decimal(str(default_rate)))
    return DailyPay(labor_hours, regular, overtime, base, 0)


def aggregate_month(records: List) -> dict:
    """Totals over a worker's work records for one month."""
    dates = set()
    sites = set()
    total_labor = Decimal(0)
    total_work = Decimal(0)
    total_overtime = Decimal(0)

    for r in records:
        dates.add(r.work_date)
        sites.add(r.site_id)
        labor = labor_hours_of(r)
        total_labor += Decimal(str(labor))
        work = r.work_hours if r.work_hours else labor * settings.HOURS_PER_MAN_DAY
        total_work += Decimal(str(work))
        total_overtime += Decimal(str(r.overtime_hours or 0.0))

    work_dates: List[date] = sorted(dates)
    return {
        "work_days": len(work_dates),
        "site_count": len(sites),
        "total_labor_hours": float(total_labor),
        "total_work_hours": float(total_work),
        "total_overtime_hours": float(total_overtime),
        "work_dates": [d.isoformat() for d in work_dates],
        "first_work_date": work_dates[0].isoformat() if work_dates else None,
        "last_work_date": work_dates[-1].isoformat() if work_dates else None,
    }
