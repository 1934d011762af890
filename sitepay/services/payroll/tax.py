"""Employment tax tables and deduction arithmetic.

Rates are percentages of gross pay. Each deduction is rounded half-up to a
whole currency unit on its own, and the total is the sum of the rounded
parts, so ``net = gross - total`` always holds exactly.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

from sqlalchemy.orm import Session

from sitepay.core.enums import EmploymentType, TaxCategory
from sitepay.core.exceptions import ValidationError
from sitepay.db.models.tax_rate import EmploymentTaxRate

logger = logging.getLogger(__name__)

DEFAULT_TAX_RATES: Dict[str, Dict[str, float]] = {
    EmploymentType.REGULAR_EMPLOYEE.value: {
        TaxCategory.INCOME_TAX.value: 3.3,
        TaxCategory.RESIDENT_TAX.value: 0.33,
        TaxCategory.NATIONAL_PENSION.value: 4.5,
        TaxCategory.HEALTH_INSURANCE.value: 3.545,
        TaxCategory.EMPLOYMENT_INSURANCE.value: 0.9,
    },
    EmploymentType.FREELANCER.value: {
        TaxCategory.INCOME_TAX.value: 3.3,
        TaxCategory.RESIDENT_TAX.value: 0.33,
    },
    EmploymentType.DAILY_WORKER.value: {
        TaxCategory.INCOME_TAX.value: 6.0,
        TaxCategory.RESIDENT_TAX.value: 0.6,
    },
}

TAX_NAMES = {
    TaxCategory.INCOME_TAX.value: "Income tax",
    TaxCategory.RESIDENT_TAX.value: "Resident tax",
    TaxCategory.NATIONAL_PENSION.value: "National pension",
    TaxCategory.HEALTH_INSURANCE.value: "Health insurance",
    TaxCategory.EMPLOYMENT_INSURANCE.value: "Employment insurance",
}

CATEGORIES = [c.value for c in TaxCategory]
EMPLOYMENT_TYPES = [e.value for e in EmploymentType]


def round_half_up(value) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def check_employment_type(employment_type: str) -> str:
    if employment_type not in EMPLOYMENT_TYPES:
        raise ValidationError(f"Unknown employment type: {employment_type}")
    return employment_type


def check_rate(rate) -> float:
    if rate is None or not 0 <= float(rate) <= 100:
        raise ValidationError("Tax rate must be between 0 and 100 percent")
    return float(rate)


def check_custom_rates(custom_rates: Optional[dict]) -> Optional[dict]:
    if not custom_rates:
        return None
    cleaned = {}
    for category, rate in custom_rates.items():
        if category not in CATEGORIES:
            raise ValidationError(f"Unknown tax category: {category}")
        cleaned[category] = check_rate(rate)
    return cleaned


def compute_deductions(gross, rates: Dict[str, float]) -> Dict[str, int]:
    """Apply percentage rates to ``gross``; returns every category plus ``total``."""
    gross_d = Decimal(str(gross))
    result = {}
    for category in CATEGORIES:
        rate = Decimal(str(rates.get(category, 0) or 0))
        result[category] = round_half_up(gross_d * rate / Decimal(100))
    result["total"] = sum(result[c] for c in CATEGORIES)
    return result


def resolve_rates(db: Session, employment_type: str, custom_rates: Optional[dict] = None) -> Dict[str, float]:
    """Effective rates: defaults, then active DB rows, then the worker's own overrides."""
    rates = {c: 0.0 for c in CATEGORIES}
    rates.update(DEFAULT_TAX_RATES.get(employment_type, {}))

    rows = db.query(EmploymentTaxRate).filter(
        EmploymentTaxRate.employment_type == employment_type,
        EmploymentTaxRate.is_active == True
    ).all()
    for row in rows:
        rates[row.tax_category] = float(row.rate)

    if custom_rates:
        for category, rate in custom_rates.items():
            if category in rates and rate is not None:
                rates[category] = float(rate)
    return rates


def seed_default_rates(db: Session) -> int:
    """Insert default rows that are missing. Existing rows, even edited ones, are left alone."""
    existing = {
        (r.employment_type, r.tax_category)
        for r in db.query(EmploymentTaxRate.employment_type, EmploymentTaxRate.tax_category).all()
    }
    inserted = 0
    for employment_type, table in DEFAULT_TAX_RATES.items():
        for category, rate in table.items():
            if (employment_type, category) in existing:
                continue
            db.add(EmploymentTaxRate(
                employment_type=employment_type,
                tax_category=category,
                tax_name=TAX_NAMES[category],
                rate=rate,
                description=f"Default {TAX_NAMES[category].lower()}",
                is_active=True
            ))
            inserted += 1
    db.commit()
    if inserted:
        logger.info("Seeded %d default tax rates", inserted)
    return inserted
