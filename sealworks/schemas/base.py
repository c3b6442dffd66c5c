"""
base.py - Shared schema base.

Wire format is camelCase; Python attributes stay snake_case.
"""

from datetime import datetime, timezone

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


def naive_utc(value: datetime | None) -> datetime | None:
    """Client timestamps may carry an offset; storage is naive UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
