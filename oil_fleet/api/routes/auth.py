from collections import defaultdict
from datetime import datetime, timedelta, timezone

import psycopg2.extras
from fastapi import APIRouter, Depends, HTTPException, Request, status

from oil_fleet.api.auth import create_access_token, verify_secret
from oil_fleet.api.database import get_conn
from oil_fleet.api.dependencies import AuthUser, get_current_user
from oil_fleet.api.models.user import TokenOut, UserLogin, UserOut

router = APIRouter(prefix="/auth", tags=["auth"])

# ── Rate limiter для login (in-memory, per IP) ────────────────────────────────
_login_attempts: dict[str, list[datetime]] = defaultdict(list)


def _check_rate_limit(ip: str, max_attempts: int = 5, window: int = 60) -> None:
    now = datetime.now(timezone.utc)
    cutoff = now - timedelta(seconds=window)
    recent = [t for t in _login_attempts[ip] if t > cutoff]
    _login_attempts[ip] = recent
    if len(recent) >= max_attempts:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Try again in a minute.",
        )
    _login_attempts[ip].append(now)


@router.post("/login")
def login(body: UserLogin, request: Request) -> TokenOut:
    client_ip = request.client.host if request.client else "unknown"
    _check_rate_limit(client_ip)

    with get_conn() as conn:
        with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(
                "SELECT id, email, password_hash, role, status FROM users WHERE email = %s",
                (body.email.strip().lower(),),
            )
            user = cur.fetchone()

    if not user or not user["password_hash"]:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if not verify_secret(body.password, user["password_hash"]):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if user["status"] == "blocked":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is blocked")

    return TokenOut(access_token=create_access_token(str(user["id"]), user["role"]))


@router.get("/me")
def me(current_user: AuthUser = Depends(get_current_user)) -> UserOut:
    return UserOut(
        id=current_user.id,
        email=current_user.email,
        role=current_user.role,
        status=current_user.status,
        full_name=current_user.full_name,
    )
