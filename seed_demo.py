#!/usr/bin/env python3
"""
Seed script: створює демо-власника, демо-пристрій і глобальну ціну.

Запускати один раз після `psql -f schema.sql`.

Використання:
    python seed_demo.py
"""

import psycopg2
import psycopg2.extras

from oil_fleet.api.auth import hash_secret
from oil_fleet.api.config import settings
from oil_fleet.api.database import close_pool, get_conn, init_pool
from oil_fleet.pricing import (
    GLOBAL, PgScheduleBackend, ScheduleRequest, create_schedule, current_price,
)

DEMO_EMAIL    = "owner@example.com"
DEMO_PASSWORD = "demo-password"
DEMO_DEVICE   = "OIL-0001"
DEMO_API_KEY  = "demo-device-key"
DEMO_PRICE    = "25.00"
DEMO_COST     = "20.00"


def main():
    conn = psycopg2.connect(settings.db_dsn)
    conn.autocommit = False

    try:
        with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:

            cur.execute("SELECT id FROM users WHERE email = %s", (DEMO_EMAIL,))
            row = cur.fetchone()
            if row:
                user_id = row["id"]
                print(f"Demo owner already exists: {user_id}")
            else:
                cur.execute(
                    "INSERT INTO users (email, password_hash, role, status, full_name) "
                    "VALUES (%s, %s, 'owner', 'active', 'Demo Owner') RETURNING id",
                    (DEMO_EMAIL, hash_secret(DEMO_PASSWORD)),
                )
                user_id = cur.fetchone()["id"]
                print(f"Created demo owner: {user_id}")

            cur.execute(
                "INSERT INTO devices (device_id, site_name, api_key_hash, owner_id) "
                "VALUES (%s, 'Demo Site', %s, %s) ON CONFLICT (device_id) DO NOTHING",
                (DEMO_DEVICE, hash_secret(DEMO_API_KEY), user_id),
            )
            print(f"Device {DEMO_DEVICE} ready.")

        conn.commit()

    except Exception as e:
        conn.rollback()
        print(f"Error: {e}")
        raise

    finally:
        conn.close()

    init_pool()
    try:
        backend = PgScheduleBackend(get_conn)
        if current_price(backend, None).schedule_id:
            print("Global price already scheduled.")
        else:
            schedule = create_schedule(
                backend,
                ScheduleRequest(GLOBAL, DEMO_PRICE, DEMO_COST),
                created_by=user_id,
                default_currency=settings.default_currency,
            )
            print(f"Global price {schedule.selling_price_per_liter} {schedule.currency}/L: {schedule.id}")
    finally:
        close_pool()


if __name__ == "__main__":
    main()
