import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import jwt

from oil_fleet.api.config import settings


# ── Password / API key ───────────────────────────────────────────────────────

def hash_secret(secret: str) -> str:
    return bcrypt.hashpw(secret.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_secret(plain: str, hashed: str) -> bool:
    """Пароль користувача або API-ключ пристрою проти bcrypt-хешу."""
    try:
        return bcrypt.checkpw(plain.encode(), hashed.encode())
    except ValueError:
        # битий хеш у БД: як невірний ключ
        return False


# ── JWT ───────────────────────────────────────────────────────────────────────

def create_access_token(user_id: str, role: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub":  user_id,
        "role": role,
        "type": "access",
        "jti":  str(uuid.uuid4()),
        "iat":  now,
        "exp":  now + timedelta(minutes=settings.jwt_access_expire_min),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    """Декодує та валідує токен. Кидає JWTError при помилці."""
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
