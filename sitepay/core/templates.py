from datetime import datetime
from pathlib import Path

from fastapi.templating import Jinja2Templates

templates = Jinja2Templates(directory=str(Path(__file__).parent.parent / "templates"))

def format_date_filter(value, format_str="%Y-%m-%d"):
    if value is None:
        return ""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    return value.strftime(format_str)

def format_money_filter(value):
    if value is None:
        return "0"
    return f"{int(round(value)):,}"

templates.env.filters["format_date"] = format_date_filter
templates.env.filters["format_money"] = format_money_filter
