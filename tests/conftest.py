"""
conftest.py: спільне налаштування для pytest.

Виконується ПЕРЕД імпортом тестових файлів:
- виставляє env-змінні до того як oil_fleet.api.config їх зчитає
- надає спільні fixtures
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Встановити до імпорту oil_fleet.api.config (load_dotenv не перезапише вже встановлені)
os.environ['JWT_SECRET'] = 'test-secret'
os.environ['DEFAULT_CURRENCY'] = 'ZMW'
os.environ['DEVICE_RATE_LIMIT_MS'] = '2000'
os.environ['DEVICE_CONFIG_RATE_LIMIT_MS'] = '2000'

sys.path.insert(0, str(Path(__file__).parent))

import pytest

from memory_store import MemoryScheduleBackend

T0 = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(days=10)


@pytest.fixture
def backend():
    return MemoryScheduleBackend(devices={'D1', 'D2'})
