from sitepay.db.base_class import Base

# Import models here so create_all sees every table
from sitepay.db.models.user import User
from sitepay.db.models.site import Site
from sitepay.db.models.work_record import WorkRecord
from sitepay.db.models.tax_rate import EmploymentTaxRate
from sitepay.db.models.salary_setting import WorkerSalarySetting
from sitepay.db.models.salary_rule import SalaryRule
from sitepay.db.models.salary_record import SalaryRecord
from sitepay.db.models.snapshot import SalarySnapshot
from sitepay.db.models.activity import ActivityLog
