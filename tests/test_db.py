"""Tests for the SQLite record store."""

from datetime import datetime
from decimal import Decimal

import pytest

from split_ledger.db import Database
from split_ledger.exceptions import DuplicateRecordError, RecordNotFoundError
from split_ledger.models import ExpenseRecord, PercentageSplit
from split_ledger.money import MoneyAmount


@pytest.fixture
def db(tmp_path):
    """Create a temporary database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def record():
    return ExpenseRecord(
        id="groceries",
        total_amount=MoneyAmount.parse("87.35"),
        payer_id="You",
        participant_ids=("You", "Sam"),
        split_method=PercentageSplit(
            percentages={"You": Decimal("62.5"), "Sam": Decimal("37.5")}
        ),
        timestamp=datetime(2025, 3, 14, 18, 30),
        description="Weekly shop",
    )


class TestSaveAndLoad:
    """Records survive a round trip through SQLite unchanged."""

    def test_round_trip_is_exact(self, db, record):
        db.save_record(record)

        loaded = db.get_record("groceries")

        assert loaded == record
        assert str(loaded.total_amount) == "87.35"
        assert loaded.split_method.percentages["You"] == Decimal("62.5")

    def test_missing_record(self, db):
        assert db.get_record("nope") is None

    def test_same_version_twice_is_rejected(self, db, record):
        db.save_record(record)

        with pytest.raises(DuplicateRecordError):
            db.save_record(record)


class TestVersions:
    """Edits are stored as new versions."""

    def test_latest_version_is_returned(self, db, record):
        db.save_record(record)
        db.save_record(record.revised(total_amount=MoneyAmount.parse("90.00")))

        assert db.get_record("groceries").version == 2
        assert db.count_records() == 1

    def test_history_oldest_first(self, db, record):
        db.save_record(record)
        db.save_record(record.revised(description="Weekly shop + wine"))

        history = db.get_record_history("groceries")

        assert [version.version for version in history] == [1, 2]
        assert history[1].description == "Weekly shop + wine"

    def test_latest_records_ordered_by_id(self, db, record):
        other = record.model_copy(update={"id": "coffee"})
        db.save_record(record)
        db.save_record(other)
        db.save_record(record.revised(description="edited"))

        latest = db.get_latest_records()

        assert [(r.id, r.version) for r in latest] == [
            ("coffee", 1),
            ("groceries", 2),
        ]


class TestSettlement:
    """The settled flag is kept outside the record payload."""

    def test_settle_latest_version(self, db, record):
        db.save_record(record)

        settled = db.set_settled("groceries")

        assert settled.settled
        assert settled.version == 1
        assert db.get_record("groceries").settled

    def test_reopen(self, db, record):
        db.save_record(record.with_settled())

        reopened = db.set_settled("groceries", settled=False)

        assert not reopened.settled

    def test_settle_unknown_record(self, db):
        with pytest.raises(RecordNotFoundError):
            db.set_settled("nope")
