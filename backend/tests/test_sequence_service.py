# Overview: Pytest coverage for daily document numbering.

import threading
from datetime import datetime

import pytest

from ordercycle import create_app
from ordercycle.extensions import db
from ordercycle.services import sequence_service
from ordercycle.services.sequence_service import (
    NAMESPACE_PURCHASE_LEDGER,
    NAMESPACE_PURCHASE_ORDER,
    allocate_sequence_number,
    format_sequence_number,
    peek_counter,
)


MARCH_1 = datetime(2026, 3, 1, 9, 0)
MARCH_2 = datetime(2026, 3, 2, 9, 0)


class TestFormatting:

    def test_three_digit_padding(self):
        assert format_sequence_number("PO", "260301", 7) == "PO-260301-007"

    def test_overflow_grows_instead_of_wrapping(self):
        assert format_sequence_number("PO", "260301", 1000) == "PO-260301-1000"


class TestAllocation:

    def test_first_number_of_the_day_is_001(self, db_session):
        assert allocate_sequence_number(NAMESPACE_PURCHASE_ORDER, now=MARCH_1) == "PO-260301-001"

    def test_numbers_are_distinct_and_gapless(self, db_session):
        numbers = [allocate_sequence_number(NAMESPACE_PURCHASE_ORDER, now=MARCH_1) for _ in range(25)]
        assert len(set(numbers)) == 25
        assert numbers == [f"PO-260301-{i:03d}" for i in range(1, 26)]
        assert peek_counter(NAMESPACE_PURCHASE_ORDER).last_number == 25

    def test_counter_resets_on_new_business_day(self, db_session):
        allocate_sequence_number(NAMESPACE_PURCHASE_ORDER, now=MARCH_1)
        allocate_sequence_number(NAMESPACE_PURCHASE_ORDER, now=MARCH_1)
        assert allocate_sequence_number(NAMESPACE_PURCHASE_ORDER, now=MARCH_2) == "PO-260302-001"
        counter = peek_counter(NAMESPACE_PURCHASE_ORDER)
        assert counter.date_code == "260302"
        assert counter.last_number == 1

    def test_namespaces_count_independently(self, db_session):
        allocate_sequence_number(NAMESPACE_PURCHASE_ORDER, now=MARCH_1)
        allocate_sequence_number(NAMESPACE_PURCHASE_ORDER, now=MARCH_1)
        assert allocate_sequence_number(NAMESPACE_PURCHASE_LEDGER, now=MARCH_1) == "PL-260301-001"

    def test_unknown_namespace_rejected(self, db_session):
        with pytest.raises(ValueError):
            allocate_sequence_number("invoice", now=MARCH_1)

    def test_business_timezone_decides_the_date(self, app, db_session):
        # 2026-03-01 20:00 UTC is already 2026-03-02 in Seoul
        app.config["BUSINESS_TIMEZONE"] = "Asia/Seoul"
        try:
            number = allocate_sequence_number(NAMESPACE_PURCHASE_ORDER, now=datetime(2026, 3, 1, 20, 0))
        finally:
            app.config["BUSINESS_TIMEZONE"] = "UTC"
        assert number == "PO-260302-001"

    def test_prefixes_cover_every_document(self):
        assert set(sequence_service.PREFIXES.values()) == {"PO", "PL", "SO", "SP"}


class TestConcurrentAllocation:

    @pytest.fixture
    def file_app(self, tmp_path):
        """App on a file-backed SQLite database so threads share real connections."""
        app = create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'counters.sqlite3'}",
            'SQLALCHEMY_TRACK_MODIFICATIONS': False,
            'BUSINESS_TIMEZONE': 'UTC',
            'SMS_PROVIDER': 'log',
            'TRANSACTION_RETRY_ATTEMPTS': 5,
            'TRANSACTION_RETRY_BACKOFF': 0.01,
            'DEBUG_SEED_ENABLED': False,
        })
        with app.app_context():
            db.create_all()
        yield app
        with app.app_context():
            db.session.remove()
            db.engine.dispose()

    def test_parallel_writers_get_distinct_gapless_numbers(self, file_app):
        workers = 12
        barrier = threading.Barrier(workers, timeout=10)
        lock = threading.Lock()
        numbers, errors = [], []

        def allocate():
            with file_app.app_context():
                try:
                    barrier.wait()
                    number = allocate_sequence_number(NAMESPACE_PURCHASE_ORDER, now=MARCH_1)
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                else:
                    with lock:
                        numbers.append(number)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=allocate) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert errors == []
        assert sorted(numbers) == [f"PO-260301-{i:03d}" for i in range(1, workers + 1)]
        with file_app.app_context():
            assert peek_counter(NAMESPACE_PURCHASE_ORDER).last_number == workers
