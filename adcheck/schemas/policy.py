from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from adcheck.schemas.common import CamelModel


class PolicyItem(BaseModel):
    """
    One discrete advertising rule extracted from policy documentation.
    """
    category: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    details: str | None = None

    @field_validator("category", "name", "description", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("details", mode="before")
    @classmethod
    def _flatten_details(cls, v: Any) -> Any:
        # Models sometimes return example lists or nested objects here
        if v is None:
            return None
        if isinstance(v, list):
            v = "; ".join(str(x).strip() for x in v if str(x).strip())
        elif isinstance(v, dict):
            v = json.dumps(v, ensure_ascii=False)
        elif not isinstance(v, str):
            v = str(v)
        return v.strip() or None


# Ordered; non-empty whenever extraction succeeds
PolicySet = list[PolicyItem]


class PolicyCacheEntry(CamelModel):
    source_key: str
    policies: list[PolicyItem]
    fetched_at: datetime
    content_hash: str


class PolicySetOut(CamelModel):
    source_key: str
    fetched_at: datetime | None
    count: int
    policies: list[PolicyItem]


class InvalidateOut(CamelModel):
    invalidated: bool
    source_key: str
