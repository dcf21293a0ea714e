import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    # ── PostgreSQL ───────────────────────────────────────────────────
    db_host:     str = os.getenv("DB_HOST", "localhost")
    db_port:     int = int(os.getenv("DB_PORT", "5432"))
    db_name:     str = os.getenv("DB_NAME", "oil_fleet")
    db_user:     str = os.getenv("DB_USER", "oil_fleet_app")
    db_password: str = os.getenv("DB_PASSWORD", "")
    db_statement_timeout_ms: int = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "5000"))

    @property
    def db_dsn(self) -> str:
        return (
            f"host={self.db_host} port={self.db_port} "
            f"dbname={self.db_name} user={self.db_user} password={self.db_password}"
        )

    # ── JWT ──────────────────────────────────────────────────────────
    jwt_secret:            str = os.getenv("JWT_SECRET", "")
    jwt_algorithm:         str = os.getenv("JWT_ALGORITHM", "HS256")
    jwt_access_expire_min: int = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "15"))

    # ── Pricing ──────────────────────────────────────────────────────
    default_currency: str = os.getenv("DEFAULT_CURRENCY", "ZMW")

    # ── Device rate limits ───────────────────────────────────────────
    device_rate_limit_ms:        int = int(os.getenv("DEVICE_RATE_LIMIT_MS", "2000"))
    device_config_rate_limit_ms: int = int(os.getenv("DEVICE_CONFIG_RATE_LIMIT_MS", "2000"))

    # ── App ──────────────────────────────────────────────────────────
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
