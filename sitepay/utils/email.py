from pathlib import Path
from typing import List

from fastapi_mail import FastMail, MessageSchema, ConnectionConfig, MessageType
from pydantic import EmailStr

from sitepay.core.config import settings
from sitepay.core.templates import format_money_filter
from sitepay.db.models.snapshot import SalarySnapshot
from sitepay.services.payroll.snapshots import payslip_context

def get_mail_config() -> ConnectionConfig:
    return ConnectionConfig(
        MAIL_USERNAME=settings.MAIL_USERNAME,
        MAIL_PASSWORD=settings.MAIL_PASSWORD,
        MAIL_FROM=settings.MAIL_FROM,
        MAIL_PORT=settings.MAIL_PORT,
        MAIL_SERVER=settings.MAIL_SERVER,
        MAIL_STARTTLS=settings.MAIL_STARTTLS,
        MAIL_SSL_TLS=settings.MAIL_SSL_TLS,
        USE_CREDENTIALS=bool(settings.MAIL_USERNAME),
        VALIDATE_CERTS=True,
        SUPPRESS_SEND=int(settings.MAIL_SUPPRESS_SEND),
        TEMPLATE_FOLDER=Path(__file__).parent.parent / "templates"
    )

async def send_payslip_email(snapshot: SalarySnapshot, recipients: List[EmailStr]):
    """
    Send the monthly salary statement of a snapshot to the given recipients.
    """
    context = payslip_context(snapshot)

    # The mail template engine has no custom filters, so amounts go in preformatted
    for key in ("daily_rate", "base_pay", "total_gross_pay", "total_deductions", "net_pay"):
        context[key] = format_money_filter(context[key])
    for line in context["deductions"]:
        line["amount"] = format_money_filter(line["amount"])

    message = MessageSchema(
        subject=f"Salary statement {context['month_label']}",
        recipients=recipients,
        template_body=context,
        subtype=MessageType.html
    )

    fm = FastMail(get_mail_config())
    await fm.send_message(message, template_name="emails/payslip.html")
