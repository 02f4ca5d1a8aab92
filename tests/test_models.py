"""
Tests for the Operations Dashboard models

Test strategy:
1. Unit tests for entity models and validators
2. Sync event models and builders
3. No I/O (stores are covered in their own modules)
"""

import pytest
from datetime import date
from uuid import uuid4

from pydantic import ValidationError

from opsdash.models.entities import (
    Budget,
    Customer,
    CustomerStatus,
    DashboardCollections,
    EntityKind,
    Expense,
    Note,
    NoteType,
    PaymentInfo,
    PaymentType,
    Project,
    ProjectType,
    is_month_token,
    month_token,
    parse_iso_date,
)
from opsdash.models.sync_events import (
    SyncEventBuilder,
    SyncEventType,
    SyncSeverity,
    SyncTarget,
)


class TestEntityModels:
    """Tests for the base entity models."""

    def test_ids_are_generated_and_unique(self):
        """Test that every new entity gets its own id."""
        first = Customer(company_name="Acme")
        second = Customer(company_name="Acme")
        assert first.id
        assert first.id != second.id

    def test_strings_are_stripped(self):
        """Test that whitespace is stripped from text fields."""
        customer = Customer(company_name="  Acme GmbH  ")
        assert customer.company_name == "Acme GmbH"

    def test_camel_case_document(self):
        """Test that documents use camelCase keys."""
        customer = Customer(company_name="Acme", monthly_revenue=250)
        document = customer.to_document()
        assert document["companyName"] == "Acme"
        assert document["monthlyRevenue"] == 250
        assert document["projectPayment"] == {"estimatedCost": 0.0, "amountPaid": 0.0}

    def test_document_round_trip(self):
        """Test that a document validates back to an equal model."""
        customer = Customer(
            company_name="Acme",
            status=CustomerStatus.OPTED_OUT,
            maintenance_paid_months=["2026-09"],
        )
        assert Customer.model_validate(customer.to_document()) == customer

    def test_type_alias_on_project_and_note(self):
        """Test that project and note types are stored under 'type'."""
        project = Project.model_validate({"projectName": "Shop", "type": "Software"})
        note = Note(content="Call back", note_type=NoteType.TODO)
        assert project.project_type == ProjectType.SOFTWARE
        assert note.to_document()["type"] == "todo"

    def test_payment_info_remaining_never_negative(self):
        """Test that overpayment does not produce a negative remainder."""
        assert PaymentInfo(estimated_cost=100, amount_paid=150).remaining == 0.0
        assert PaymentInfo(estimated_cost=100, amount_paid=40).remaining == 60.0

    def test_customer_payment_lookup(self):
        """Test that payment() returns the matching sub-record."""
        customer = Customer(maintenance_payment=PaymentInfo(estimated_cost=80))
        assert customer.payment(PaymentType.MAINTENANCE).estimated_cost == 80

    def test_entities_are_frozen(self):
        """Test that an entity cannot be edited in place, only copied."""
        customer = Customer(company_name="Acme", monthly_revenue=100)
        with pytest.raises(ValidationError):
            customer.monthly_revenue = 999

        edited = customer.model_copy(update={"monthly_revenue": 999})
        assert customer.monthly_revenue == 100
        assert edited.monthly_revenue == 999
        assert edited.id == customer.id

    def test_expense_requires_category(self):
        """Test that a blank expense category is rejected."""
        assert Expense().category == "Other"
        with pytest.raises(ValidationError):
            Expense(category="  ")


class TestMonthTokens:
    """Tests for YYYY-MM month tokens."""

    def test_valid_tokens(self):
        assert is_month_token("2026-01")
        assert is_month_token("2026-12")

    def test_invalid_tokens(self):
        assert not is_month_token("2026-13")
        assert not is_month_token("2026-1")
        assert not is_month_token("")

    def test_month_token_from_date(self):
        assert month_token(date(2026, 3, 9)) == "2026-03"

    def test_paid_months_are_deduplicated(self):
        """Test that duplicate paid months collapse to one."""
        customer = Customer(maintenance_paid_months=["2026-01", "2026-01", "2026-02"])
        assert customer.maintenance_paid_months == ["2026-01", "2026-02"]

    def test_malformed_paid_month_rejected(self):
        with pytest.raises(ValidationError):
            Customer(maintenance_paid_months=["January"])

    def test_budget_month_validated(self):
        with pytest.raises(ValidationError):
            Budget(category="Hosting", month="2026/01")

    def test_budget_requires_category(self):
        with pytest.raises(ValidationError):
            Budget(category="", month="2026-01")

    def test_parse_iso_date(self):
        assert parse_iso_date("2026-10-19") == date(2026, 10, 19)
        assert parse_iso_date("2026-10-19T08:30:00Z") == date(2026, 10, 19)
        assert parse_iso_date("") is None
        assert parse_iso_date("not a date") is None


class TestEntityKind:
    """Tests for table naming."""

    def test_remote_and_local_table_names(self):
        assert EntityKind.PAYMENT_HISTORY.remote_table == "payment_history"
        assert EntityKind.PAYMENT_HISTORY.local_table == "paymentHistory"
        assert EntityKind.CUSTOMERS.local_table == "customers"

    def test_collections_accessors(self):
        """Test get/replace/counts across all kinds."""
        collections = DashboardCollections()
        collections.replace(EntityKind.CUSTOMERS, [Customer(company_name="Acme")])
        assert len(collections.get(EntityKind.CUSTOMERS)) == 1
        assert collections.counts()["customers"] == 1
        assert set(collections.counts()) == {kind.value for kind in EntityKind}


class TestSyncEventModels:
    """Tests for sync event models."""

    def test_collection_synced_event(self):
        """Test building a collection synced event."""
        correlation_id = uuid4()
        event = SyncEventBuilder.collection_synced(
            "customers", 3, SyncTarget.REMOTE, correlation_id
        )
        assert event.event_type == SyncEventType.COLLECTION_SYNCED
        assert event.entity_kind == "customers"
        assert event.correlation_id == correlation_id

    def test_remote_load_failed_is_warning(self):
        event = SyncEventBuilder.remote_load_failed("timeout")
        assert event.severity == SyncSeverity.WARNING
        assert event.error_message == "timeout"

    def test_to_log_dict(self):
        """Test conversion to a structured log dict."""
        event = SyncEventBuilder.load_completed(SyncTarget.LOCAL, {"customers": 3})
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "load_completed"
        assert log_dict["target"] == "local"
        assert log_dict["details"] == {"counts": {"customers": 3}}
