# school_attendance/backend/api/schemas/envelope.py
from typing import Any, Optional

from pydantic import BaseModel


def to_wire(value: Any, exclude: Optional[Any] = None) -> Any:
    """Dumps a model (or a list of models) the way the web client reads it: camelCase, JSON types."""
    if isinstance(value, list):
        return [to_wire(item, exclude) for item in value]
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude=exclude)
    return value


def ok(**payload) -> dict:
    """The success envelope: {"success": true, ...payload}."""
    return {"success": True, **payload}


def failure(message: str, errors: Optional[dict] = None) -> dict:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body
