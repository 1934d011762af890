import enum


class Role(str, enum.Enum):
    SYSTEM_ADMIN = "system_admin"
    ADMIN = "admin"
    SITE_MANAGER = "site_manager"
    CUSTOMER_MANAGER = "customer_manager"
    PARTNER = "partner"
    WORKER = "worker"


ADMIN_ROLES = [Role.ADMIN.value, Role.SYSTEM_ADMIN.value]

# Roles that can hold a salary setting
PAYABLE_ROLES = [Role.WORKER.value, Role.SITE_MANAGER.value, Role.CUSTOMER_MANAGER.value]


class EmploymentType(str, enum.Enum):
    REGULAR_EMPLOYEE = "regular_employee"
    FREELANCER = "freelancer"
    DAILY_WORKER = "daily_worker"


class TaxCategory(str, enum.Enum):
    INCOME_TAX = "income_tax"
    RESIDENT_TAX = "resident_tax"
    NATIONAL_PENSION = "national_pension"
    HEALTH_INSURANCE = "health_insurance"
    EMPLOYMENT_INSURANCE = "employment_insurance"


class RuleType(str, enum.Enum):
    HOURLY_RATE = "hourly_rate"
    DAILY_RATE = "daily_rate"
    OVERTIME_MULTIPLIER = "overtime_multiplier"
    BONUS_CALCULATION = "bonus_calculation"


class RecordStatus(str, enum.Enum):
    """Daily salary record workflow."""

    CALCULATED = "calculated"
    APPROVED = "approved"
    PAID = "paid"


class SnapshotStatus(str, enum.Enum):
    """Monthly payslip workflow."""

    ISSUED = "issued"
    APPROVED = "approved"
    PAID = "paid"
