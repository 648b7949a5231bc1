import re
from datetime import date
from typing import Annotated, Any, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, BeforeValidator, Field, ValidationError

from payroll_admin.core.errors import ValidationFailed

UUID_RE = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

ModelT = TypeVar("ModelT", bound=BaseModel)


class MalformedBody:
    def __init__(self, error: str):
        self.error = error


def _uuid(value: str) -> str:
    if not UUID_RE.match(value):
        raise ValueError("Must be a valid UUID")
    return value.lower()


def _iso_date(value: Any) -> Any:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not DATE_RE.match(value):
        raise ValueError("Date must be in YYYY-MM-DD format")
    return value


def _email(value: str) -> str:
    if not EMAIL_RE.match(value):
        raise ValueError("Invalid email format")
    return value


UUIDStr = Annotated[str, AfterValidator(_uuid)]
IsoDate = Annotated[date, BeforeValidator(_iso_date)]
Email = Annotated[str, AfterValidator(_email)]
NonNegative = Annotated[float, Field(ge=0)]
Notes = Optional[Annotated[str, Field(max_length=1000)]]


def _field_name(loc: tuple) -> str:
    parts = [str(p) for p in loc if not isinstance(p, int)] or [str(p) for p in loc]
    return ".".join(parts) or "body"


def _clean_message(msg: str) -> str:
    for prefix in ("Value error, ", "Assertion failed, "):
        if msg.startswith(prefix):
            return msg[len(prefix):]
    return msg


def collect_errors(exc: ValidationError) -> list[dict[str, str]]:
    return [
        {"field": _field_name(tuple(err.get("loc") or ())), "message": _clean_message(err.get("msg", "Invalid value"))}
        for err in exc.errors()
    ]


def validate_request(schema: type[ModelT], data: Any) -> ModelT:
    """
    Validate a request body against a pydantic model.

    Every offending field is reported, not just the first one.
    """
    if isinstance(data, MalformedBody):
        raise ValidationFailed([{"field": "body", "message": "Request body is not valid JSON"}])
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationFailed([{"field": "body", "message": "Request body must be a JSON object"}])

    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise ValidationFailed(collect_errors(exc)) from exc
