from typing import Dict, Iterable

from pydantic import ValidationError
from starlette.datastructures import FormData


def clean_form(form: FormData, list_fields: Iterable[str] = ()) -> Dict:
    """Form fields as a dict; blank fields are dropped, list fields keep every value."""
    data = {}
    for key in form.keys():
        if key in list_fields:
            data[key] = [v for v in form.getlist(key) if v]
            continue
        value = form.get(key)
        if isinstance(value, str):
            value = value.strip()
        if value != "":
            data[key] = value
    for key in list_fields:
        data.setdefault(key, [])
    return data


def error_messages(exc: ValidationError) -> Dict[str, str]:
    out = {}
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ())) or "__all__"
        out.setdefault(field, err.get("msg", "Invalid value"))
    return out
