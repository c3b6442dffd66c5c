from datetime import datetime

from pydantic import field_validator

from .base import CamelModel, naive_utc


class RedirectWindow(CamelModel):
    starts_at: datetime | None = None
    ends_at: datetime | None = None

    @field_validator("starts_at", "ends_at")
    @classmethod
    def to_naive_utc(cls, v):
        return naive_utc(v)


class RedirectRuleCreate(RedirectWindow):
    redirect_url: str
    entity_type: str | None = None
    entity_id: str | None = None
    version_id: str | None = None
    reason: str | None = None


class FallbackUpsert(RedirectWindow):
    redirect_url: str
    reason: str | None = None


class RedirectRuleResponse(CamelModel):
    id: str
    entity_type: str | None = None
    entity_id: str | None = None
    version_id: str | None = None
    is_fallback: bool
    redirect_url: str
    active: bool
    reason: str | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    created_at: datetime
