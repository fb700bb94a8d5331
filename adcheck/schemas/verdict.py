from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, StrictBool, field_validator, model_validator

from adcheck.schemas.common import CamelModel


Severity = Literal["high", "medium", "low"]


class Violation(BaseModel):
    category: str = Field(min_length=1)
    name: str | None = None
    description: str = Field(min_length=1)
    reason: str | None = None
    severity: Severity

    @model_validator(mode="before")
    @classmethod
    def _description_from_reason(cls, data: Any) -> Any:
        # Either field may carry the explanation; description is the canonical one
        if isinstance(data, dict) and not data.get("description") and data.get("reason"):
            data = {**data, "description": data["reason"]}
        return data

    @field_validator("category", "description", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("severity", mode="before")
    @classmethod
    def _lower_severity(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


class ComplianceVerdict(CamelModel):
    violated: StrictBool
    violations: list[Violation]
    reasoning: str = ""
    recommendations: str | None = None
    checked_at: datetime

    @field_validator("reasoning", mode="before")
    @classmethod
    def _reasoning_text(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("recommendations", mode="before")
    @classmethod
    def _recommendations_text(cls, v: Any) -> Any:
        if isinstance(v, list):
            return "; ".join(str(x) for x in v) or None
        return v or None

    @model_validator(mode="after")
    def _violations_match_flag(self) -> "ComplianceVerdict":
        if self.violated and not self.violations:
            raise ValueError("violated=true requires at least one violation")
        if not self.violated and self.violations:
            raise ValueError("violated=false must not list violations")
        return self
