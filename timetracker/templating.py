from pathlib import Path
from typing import Optional

from fastapi import Request
from fastapi.templating import Jinja2Templates

from .config import settings


templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
templates.env.globals["app_name"] = settings.app_name


def _hours(value) -> str:
    if value is None:
        return ""
    return f"{float(value):.2f}"


templates.env.filters["hours"] = _hours


def render(request: Request, name: str, context: Optional[dict] = None, status_code: int = 200):
    ctx = {"user": getattr(request.state, "user", None)}
    ctx.update(context or {})
    return templates.TemplateResponse(request, name, ctx, status_code=status_code)
