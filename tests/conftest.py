"""Shared fixtures.

Provides a fresh temp-file SQLite DatabaseManager for each test and
small factories for users, holidays and products.
"""
import os
import shutil
import tempfile
from datetime import date

import pytest

from business.auth import hash_password
from database import DatabaseManager

# bcrypt 的最小轮数，加快测试
TEST_BCRYPT_ROUNDS = 4


@pytest.fixture
def temp_db():
    """Yield a fresh DatabaseManager bound to a temp SQLite database."""
    temp_dir = tempfile.mkdtemp(prefix="calendar-tests-")
    db_path = os.path.join(temp_dir, "test.db")
    manager = DatabaseManager(database_url=f"sqlite:///{db_path}")
    manager.create_tables()

    try:
        yield manager
    finally:
        manager.close()
        shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def make_user(temp_db):
    """Factory: create a user directly through the repository."""
    def _make(phone="13900000001", password="secret123", role="user",
              real_name=None):
        password_hash, salt = hash_password(password, TEST_BCRYPT_ROUNDS)
        return temp_db.users.create({
            "phone": phone,
            "password_hash": password_hash,
            "password_salt": salt,
            "role": role,
            "real_name": real_name,
        })
    return _make


@pytest.fixture
def make_holiday(temp_db):
    """Factory: create an active holiday."""
    def _make(holiday_date, name="休市", holiday_type="national"):
        return temp_db.holidays.create({
            "holiday_date": holiday_date,
            "holiday_name": name,
            "holiday_type": holiday_type,
        })
    return _make


@pytest.fixture
def make_product(temp_db):
    """Factory: upsert a product with rules given as (type, date, ...) tuples."""
    def _make(code="P001", name="稳健一号", open_dates=(), periods=(),
              description=""):
        product_id, _ = temp_db.products.upsert({
            "product_code": code,
            "product_name": name,
            "description": description,
            "open_dates": [
                {
                    "open_type": open_type,
                    "open_date": open_date,
                    "period_start_days": start_days,
                    "period_end_days": end_days,
                }
                for open_type, open_date, start_days, end_days in open_dates
            ],
            "reservation_periods": [
                {
                    "open_type": open_type,
                    "period_start_date": start,
                    "period_end_date": end,
                }
                for open_type, start, end in periods
            ],
        })
        return product_id
    return _make


@pytest.fixture
def june_product(make_product):
    """A product opening on 2024-06-15 with a reservation window in June."""
    return make_product(
        open_dates=[("both", date(2024, 6, 15), 5, 1)],
        periods=[("both", date(2024, 6, 1), date(2024, 6, 10))],
    )
