"""Helpers for turning request payloads into DTO keyword arguments."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Type

from pydantic import BaseModel


def dto_kwargs(data: Mapping[str, Any], dto_class: Type[BaseModel]) -> Dict[str, Any]:
    """Keep the keys ``dto_class`` declares, dropping ``None`` values.

    Keys are matched by field name only; views that accept camelCase names
    map them before calling this. Missing required fields are left for
    pydantic to report.
    """
    fields = dto_class.model_fields
    return {key: value for key, value in data.items() if key in fields and value is not None}
