"""ORM model tests.

Checks table creation, column defaults and relationships.
"""
from datetime import date, datetime

from sqlalchemy import inspect

from database.models import (
    Holiday, OperationLog, Product, ProductOpenDate,
    ProductReservationPeriod, User,
)


class TestTableCreation:

    def test_all_tables_created(self, temp_db):
        tables = set(inspect(temp_db.engine).get_table_names())
        assert {
            "users", "products", "product_open_dates",
            "product_reservation_periods", "holidays", "user_operation_logs",
        } <= tables

    def test_create_tables_is_idempotent(self, temp_db):
        temp_db.create_tables()
        temp_db.create_tables()
        assert "products" in inspect(temp_db.engine).get_table_names()


class TestModelDefaults:

    def test_user_defaults(self, temp_db):
        with temp_db.conn.transaction() as session:
            user = User(phone="13900000009", password_hash="h", password_salt="s")
            session.add(user)
            session.flush()
            assert user.role == "user"
            assert user.is_active is True
            assert isinstance(user.created_at, datetime)
            assert user.last_login is None

    def test_product_with_rules(self, temp_db):
        with temp_db.conn.transaction() as session:
            product = Product(product_code="M1", product_name="模型测试")
            product.open_dates.append(ProductOpenDate(
                open_type="subscribe", open_date=date(2024, 3, 1)
            ))
            product.reservation_periods.append(ProductReservationPeriod(
                open_type="subscribe",
                period_start_date=date(2024, 2, 20),
                period_end_date=date(2024, 2, 28),
            ))
            session.add(product)
            session.flush()

            rule = product.open_dates[0]
            assert rule.product_id == product.id
            assert rule.period_start_days == 0
            assert rule.period_end_days == 0
            assert rule.is_active is True
            assert product.reservation_periods[0].product is product

    def test_holiday_defaults(self, temp_db):
        with temp_db.conn.transaction() as session:
            holiday = Holiday(
                holiday_date=date(2024, 10, 1),
                holiday_name="国庆节",
                holiday_type="national",
            )
            session.add(holiday)
            session.flush()
            assert holiday.is_active is True

    def test_operation_log_allows_anonymous(self, temp_db):
        with temp_db.conn.transaction() as session:
            log = OperationLog(operation_type="测试")
            session.add(log)
            session.flush()
            assert log.user_id is None
            assert isinstance(log.created_at, datetime)
