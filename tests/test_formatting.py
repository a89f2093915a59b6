"""Tests for notification message formatting."""

import pytest
from dataclasses import replace
from datetime import UTC, date, datetime
from decimal import Decimal

from mysociety.domain.entities import Actor, InflowRecord, OutflowRecord, RecordKind
from mysociety.domain.errors import ValidationError
from mysociety.notifications.formatting import format_amount, format_message

CREATED_AT = datetime(2024, 3, 1, 9, tzinfo=UTC)


@pytest.fixture
def expense():
    return OutflowRecord(
        id="3f2a9c1e-0000-4000-8000-000000000000",
        description="Gardener",
        amount=Decimal("1500.00"),
        date=date(2024, 3, 1),
        created_by="admin",
        created_at=CREATED_AT,
    )


@pytest.fixture
def payment():
    return InflowRecord(
        id="9b1d0000-0000-4000-8000-000000000000",
        unit_reference="A-101",
        amount=Decimal("2500.00"),
        date=date(2024, 3, 5),
        created_by="treasurer",
        created_at=CREATED_AT,
        payment_mode="Online",
        reference_number="UTR123",
    )


def test_format_amount():
    assert format_amount(Decimal("1234567.5")) == "₹1,234,567.50"
    assert format_amount(Decimal("0")) == "₹0.00"


class TestExpenseMessages:
    def test_created(self, expense):
        message = format_message(RecordKind.OUTFLOW, "created", expense, Actor("admin", "admin"))
        assert message == "[Expense Added] ₹1,500.00 - Gardener on 01/03/2024 (by admin)."

    def test_updated_includes_short_id_and_unit(self, expense):
        record = replace(expense, unit_reference="B-12")
        message = format_message("outflow", "updated", record, "treasurer")
        assert message == (
            "[Expense Updated] ID 3f2a9c1e - Gardener - ₹1,500.00 on 01/03/2024 "
            "(Unit B-12) (by treasurer)."
        )

    def test_deleted(self, expense):
        message = format_message("outflow", "deleted", expense, "admin")
        assert message.startswith("[Expense Deleted] ID 3f2a9c1e - Gardener")
        assert message.endswith("(by admin).")


class TestPaymentMessages:
    def test_created(self, payment):
        message = format_message(RecordKind.INFLOW, "created", payment, "treasurer")
        assert message == (
            "[Payment Received] Unit A-101 - ₹2,500.00 on 05/03/2024 (Online) Ref: UTR123 "
            "(by treasurer)."
        )

    def test_created_without_optional_fields(self, payment):
        record = replace(payment, payment_mode=None, reference_number=None)
        message = format_message("inflow", "created", record, "treasurer")
        assert message == "[Payment Received] Unit A-101 - ₹2,500.00 on 05/03/2024 (by treasurer)."

    def test_updated_and_deleted(self, payment):
        assert format_message("inflow", "updated", payment, "a").startswith("[Payment Updated] Unit A-101")
        assert format_message("inflow", "deleted", payment, "a") == (
            "[Payment Deleted] Unit A-101 - ₹2,500.00 on 05/03/2024 (by a)."
        )


def test_unknown_kind(expense):
    with pytest.raises(ValidationError, match="Unknown record kind"):
        format_message("refund", "created", expense, "admin")


def test_unknown_action(expense):
    with pytest.raises(ValidationError, match="Unknown action"):
        format_message("outflow", "archived", expense, "admin")
