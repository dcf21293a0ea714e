from contextlib import contextmanager
from typing import Generator

import psycopg2
import psycopg2.extras
import psycopg2.pool

from oil_fleet.api.config import settings

_pool: psycopg2.pool.ThreadedConnectionPool | None = None


def init_pool() -> None:
    global _pool
    psycopg2.extras.register_uuid()
    _pool = psycopg2.pool.ThreadedConnectionPool(
        minconn=2,
        maxconn=20,
        dsn=settings.db_dsn,
    )


def close_pool() -> None:
    global _pool
    if _pool:
        _pool.closeall()
        _pool = None


@contextmanager
def get_conn(
    *,
    serializable: bool = False,
    read_only: bool = False,
    statement_timeout_ms: int | None = None,
) -> Generator:
    """DB connection, одна транзакція: commit при виході, rollback при винятку.

    serializable=True: ізоляція SERIALIZABLE (Schedule Writer).
    read_only=True: транзакція лише для читання.
    statement_timeout_ms: дедлайн викликача, transaction-local; скасований
    запит відкочує всю транзакцію.
    """
    if _pool is None:
        raise psycopg2.pool.PoolError("connection pool is not initialised")
    conn = _pool.getconn()
    try:
        with conn.cursor() as cur:
            # SET TRANSACTION має бути першим запитом транзакції
            if serializable:
                cur.execute("SET TRANSACTION ISOLATION LEVEL SERIALIZABLE")
            if read_only:
                cur.execute("SET TRANSACTION READ ONLY")
            if statement_timeout_ms:
                cur.execute(
                    "SELECT set_config('statement_timeout', %s, true)",
                    (str(int(statement_timeout_ms)),),
                )
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        _pool.putconn(conn)
