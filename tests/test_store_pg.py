"""
Тести PostgreSQL-сховища (oil_fleet/pricing/store.py).

Не потребує живої БД: psycopg2 connection мокується через unittest.mock.
"""

import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import psycopg2
import psycopg2.errors
import pytest

from oil_fleet.pricing import (
    GLOBAL, DeviceScope, OverlapConflict, SerializationConflict, StorageFailure,
)
from oil_fleet.pricing.schedule import NewSchedule
from oil_fleet.pricing.store import PgScheduleBackend, PgScheduleStore

T0 = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(days=10)
SID = uuid.UUID('00000000-0000-0000-0000-0000000000a1')


def _row(device_id='D1', effective_to=None):
    return {
        'id': SID,
        'device_id': device_id,
        'selling_price_per_liter': Decimal('25.0000'),
        'cost_price_per_liter': Decimal('20.0000'),
        'currency': 'ZMW',
        'effective_from': T0,
        'effective_to': effective_to,
        'created_at': T0,
        'created_by': None,
    }


# ── Хелпер: мок psycopg2 connection ──────────────────────────────────────────

def _mock_conn(rows=None, one=None, rowcount=1):
    cur = MagicMock()
    cur.__enter__ = MagicMock(return_value=cur)
    cur.__exit__ = MagicMock(return_value=False)
    cur.fetchall.return_value = rows if rows is not None else []
    cur.fetchone.return_value = one
    cur.rowcount = rowcount

    conn = MagicMock()
    conn.cursor.return_value = cur
    return conn, cur


def _sql(cur):
    return cur.execute.call_args[0][0]


def _params(cur):
    return cur.execute.call_args[0][1]


class TestQueries:

    def test_open_schedule_global_filter(self):
        conn, cur = _mock_conn(one=_row(device_id=None))
        s = PgScheduleStore(conn).find_open_schedule(GLOBAL)
        assert 'device_id IS NULL' in _sql(cur)
        assert 'effective_to IS NULL' in _sql(cur)
        assert 'FOR UPDATE' in _sql(cur)
        assert _params(cur) == ()
        assert s.scope == GLOBAL

    def test_open_schedule_device_filter(self):
        conn, cur = _mock_conn(one=None)
        assert PgScheduleStore(conn).find_open_schedule(DeviceScope('D1')) is None
        assert 'device_id = %s' in _sql(cur)
        assert _params(cur) == ('D1',)

    def test_overlapping_open_ended_with_exclusion(self):
        conn, cur = _mock_conn(one=None)
        PgScheduleStore(conn).find_overlapping(DeviceScope('D1'), T1, None, excluding_id=SID)
        assert 'effective_from < %s' not in _sql(cur)
        assert 'id <> %s' in _sql(cur)
        assert _params(cur) == ('D1', T1, str(SID))

    def test_overlapping_bounded_without_exclusion(self):
        conn, cur = _mock_conn(one=_row())
        s = PgScheduleStore(conn).find_overlapping(GLOBAL, T0, T1)
        assert 'effective_from < %s' in _sql(cur)
        assert 'id <>' not in _sql(cur)
        assert _params(cur) == (T0, T1)
        assert s.id == SID

    def test_covering(self):
        conn, cur = _mock_conn(one=_row(effective_to=T1))
        s = PgScheduleStore(conn).find_covering(DeviceScope('D1'), T0)
        assert 'ORDER BY effective_from DESC' in _sql(cur)
        assert _params(cur) == ('D1', T0, T0)
        assert s.effective_to == T1
        assert s.selling_price_per_liter == Decimal('25')

    def test_list_all_scopes(self):
        conn, cur = _mock_conn(rows=[_row(), _row(device_id=None)])
        rows = PgScheduleStore(conn).list_schedules()
        assert 'WHERE' not in _sql(cur)
        assert [r.scope for r in rows] == [DeviceScope('D1'), GLOBAL]

    def test_device_exists(self):
        conn, cur = _mock_conn(one=(1,))
        assert PgScheduleStore(conn).device_exists('D1') is True
        assert _params(cur) == ('D1',)


class TestMutations:

    def test_create_inserts_open_schedule(self):
        conn, cur = _mock_conn(one=_row())
        record = NewSchedule(DeviceScope('D1'), Decimal('25'), Decimal('20'), 'ZMW', T0)
        s = PgScheduleStore(conn).create(record, created_by=None)
        assert 'INSERT INTO price_schedules' in _sql(cur)
        assert _params(cur) == ('D1', Decimal('25'), Decimal('20'), 'ZMW', T0, None)
        assert s.is_open

    def test_create_global_passes_null_device(self):
        conn, cur = _mock_conn(one=_row(device_id=None))
        record = NewSchedule(GLOBAL, Decimal('25'), Decimal('0'), 'ZMW', T0)
        PgScheduleStore(conn).create(record)
        assert _params(cur)[0] is None

    def test_close_only_open_schedule(self):
        conn, cur = _mock_conn(rowcount=1)
        PgScheduleStore(conn).close(SID, T1)
        assert 'effective_to IS NULL' in _sql(cur)
        assert _params(cur) == (T1, str(SID))

    def test_close_lost_race(self):
        conn, _ = _mock_conn(rowcount=0)
        with pytest.raises(SerializationConflict):
            PgScheduleStore(conn).close(SID, T1)


# ── Backend: транзакції та маппінг помилок ──────────────────────────────────

def _connect(conn, exit_exc=None):
    calls = []

    @contextmanager
    def connect(**kwargs):
        calls.append(kwargs)
        yield conn
        if exit_exc is not None:
            raise exit_exc

    return connect, calls


class TestBackend:

    def test_transaction_is_serializable_with_deadline(self):
        conn, _ = _mock_conn()
        connect, calls = _connect(conn)
        backend = PgScheduleBackend(connect, statement_timeout_ms=5000)
        with backend.transaction(timeout_ms=250) as store:
            assert isinstance(store, PgScheduleStore)
        assert calls == [{'serializable': True, 'statement_timeout_ms': 250}]

    def test_snapshot_read_only_default_timeout(self):
        conn, _ = _mock_conn()
        connect, calls = _connect(conn)
        with PgScheduleBackend(connect, statement_timeout_ms=5000).snapshot():
            pass
        assert calls == [{'read_only': True, 'statement_timeout_ms': 5000}]

    def test_commit_serialization_failure(self):
        conn, _ = _mock_conn()
        connect, _ = _connect(conn, psycopg2.errors.SerializationFailure('could not serialize'))
        with pytest.raises(SerializationConflict) as e:
            with PgScheduleBackend(connect).transaction():
                pass
        assert isinstance(e.value, StorageFailure)

    @pytest.mark.parametrize('exc', [
        psycopg2.errors.UniqueViolation('price_schedules_one_open'),
        psycopg2.errors.ExclusionViolation('price_schedules_no_overlap'),
    ])
    def test_constraint_violation_is_overlap(self, exc):
        conn, cur = _mock_conn()
        cur.execute.side_effect = exc
        connect, _ = _connect(conn)
        record = NewSchedule(GLOBAL, Decimal('25'), Decimal('0'), 'ZMW', T0)
        with pytest.raises(OverlapConflict):
            with PgScheduleBackend(connect).transaction() as store:
                store.create(record)

    def test_deadline_exceeded(self):
        conn, cur = _mock_conn()
        cur.execute.side_effect = psycopg2.errors.QueryCanceled('statement timeout')
        connect, _ = _connect(conn)
        with pytest.raises(StorageFailure, match='deadline'):
            with PgScheduleBackend(connect).snapshot() as store:
                store.find_covering(GLOBAL, T0)

    def test_connection_error(self):
        @contextmanager
        def broken(**kwargs):
            raise psycopg2.OperationalError('connection refused')
            yield

        with pytest.raises(StorageFailure):
            with PgScheduleBackend(broken).transaction():
                pass

    def test_domain_errors_pass_through(self):
        conn, _ = _mock_conn()
        connect, _ = _connect(conn)
        with pytest.raises(OverlapConflict):
            with PgScheduleBackend(connect).transaction():
                raise OverlapConflict()
