from datetime import datetime
from urllib.parse import unquote
from fastapi.templating import Jinja2Templates
from constructpm.core.config import BASE_DIR

templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

def format_date_filter(value, format_str="%b %d, %Y"):
    if value is None:
        return ""
    if isinstance(value, str):
        try:
            value = datetime.strptime(value, "%Y-%m-%d")
        except ValueError:
            return value
    return value.strftime(format_str)

templates.env.filters["format_date"] = format_date_filter

def format_datetime_filter(value):
    if value is None:
        return ""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    return value.strftime("%Y-%m-%d %H:%M UTC")

templates.env.filters["format_datetime"] = format_datetime_filter

def money_filter(value):
    if value is None:
        return "-"
    return f"${value:,.2f}"

templates.env.filters["money"] = money_filter

def label_filter(value):
    # PROJECT_MANAGER -> Project Manager
    if not value:
        return ""
    return str(value).replace("_", " ").title()

templates.env.filters["label"] = label_filter

templates.env.filters["unquote"] = unquote
