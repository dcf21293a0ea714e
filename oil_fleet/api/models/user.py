from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel


class UserLogin(BaseModel):
    email:    str
    password: str


class UserOut(BaseModel):
    id:        UUID
    email:     str
    role:      str
    status:    str
    full_name: str | None


class TokenOut(BaseModel):
    access_token: str
    token_type:   str = "bearer"
