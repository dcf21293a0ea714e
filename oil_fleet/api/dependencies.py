import math
from dataclasses import dataclass
from uuid import UUID

import psycopg2.extras
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from oil_fleet.api.auth import decode_token, verify_secret
from oil_fleet.api.config import settings
from oil_fleet.api.database import get_conn
from oil_fleet.api.rate_limit import RateLimiter
from oil_fleet.pricing import PgScheduleBackend

_bearer = HTTPBearer(auto_error=False)

_backend = PgScheduleBackend(get_conn, statement_timeout_ms=settings.db_statement_timeout_ms)
_limiter = RateLimiter(settings.device_rate_limit_ms)


def get_schedule_backend() -> PgScheduleBackend:
    return _backend


def get_rate_limiter() -> RateLimiter:
    return _limiter


# ── Users ─────────────────────────────────────────────────────────────────────

@dataclass
class AuthUser:
    id:        UUID
    email:     str
    role:      str
    status:    str
    full_name: str | None


def _fetch_user(user_id: str) -> AuthUser | None:
    with get_conn() as conn:
        with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(
                "SELECT id, email, role, status, full_name FROM users WHERE id = %s",
                (user_id,),
            )
            row = cur.fetchone()
    if not row:
        return None
    return AuthUser(
        id=row["id"],
        email=row["email"],
        role=row["role"],
        status=row["status"],
        full_name=row["full_name"],
    )


def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> AuthUser:
    exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not creds:
        raise exc
    try:
        payload = decode_token(creds.credentials)
    except JWTError:
        raise exc

    if payload.get("type") != "access":
        raise exc

    user = _fetch_user(payload["sub"])
    if not user:
        raise exc

    if user.status == "blocked":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is blocked",
        )
    return user


def require_owner(current_user: AuthUser = Depends(get_current_user)) -> AuthUser:
    if current_user.role != "owner":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden: owner access required",
        )
    return current_user


# ── Devices ───────────────────────────────────────────────────────────────────

@dataclass
class AuthDevice:
    id:        UUID
    device_id: str
    site_name: str
    owner_id:  UUID | None


def _fetch_device(device_id: str) -> dict | None:
    with get_conn() as conn:
        with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(
                "SELECT id, device_id, site_name, owner_id, api_key_hash "
                "FROM devices WHERE device_id = %s",
                (device_id,),
            )
            return cur.fetchone()


def require_device(
    x_device_id: str | None = Header(default=None),
    x_api_key:   str | None = Header(default=None),
) -> AuthDevice:
    """X-Device-Id + X-Api-Key → AuthDevice. 401 якщо пара не збігається."""
    exc = HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid device credentials")
    if not x_device_id or not x_api_key:
        raise exc

    row = _fetch_device(x_device_id)
    if not row or not verify_secret(x_api_key, row["api_key_hash"]):
        raise exc

    return AuthDevice(
        id=row["id"],
        device_id=row["device_id"],
        site_name=row["site_name"],
        owner_id=row["owner_id"],
    )


def _rate_gate(key_suffix: str, interval_ms: int):
    """Dependency: автентифікований пристрій, що пройшов rate limiter."""

    def gate(
        device: AuthDevice = Depends(require_device),
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> AuthDevice:
        result = limiter.check(f"{device.device_id}{key_suffix}", interval_ms)
        if not result.allowed:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={"error": "Rate limited", "wait_ms": result.wait_ms},
                headers={"Retry-After": str(math.ceil(result.wait_ms / 1000))},
            )
        return device

    return gate


config_device = _rate_gate("-config", settings.device_config_rate_limit_ms)
ingest_device = _rate_gate("", settings.device_rate_limit_ms)
