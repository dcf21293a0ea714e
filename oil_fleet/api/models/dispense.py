from __future__ import annotations

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class ReceiptIn(BaseModel):
    """Квитанція дозування від пристрою. Час: unix-секунди."""

    session_id:       str = Field(min_length=1, max_length=100)
    operator_id:      UUID | None = None
    target_liters:    float = Field(ge=0)
    dispensed_liters: float = Field(ge=0)
    duration_sec:     int = Field(ge=0)
    status:           Literal["DONE", "ERROR", "CANCELED"]
    error_message:    str | None = Field(default=None, max_length=500)
    started_at_unix:  int = Field(gt=0)
    ended_at_unix:    int | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def ended_not_before_started(self) -> ReceiptIn:
        if self.ended_at_unix is not None and self.ended_at_unix < self.started_at_unix:
            raise ValueError("ended_at_unix must not be before started_at_unix")
        return self
