"""Tests for the remote row transform layer."""

import math

import pytest
from pydantic import ValidationError

from opsdash.models.entities import (
    Automation,
    AutomationStatus,
    Budget,
    Customer,
    CustomerStatus,
    EntityKind,
    Expense,
    Note,
    NoteType,
    PaymentHistory,
    PaymentInfo,
    PaymentType,
    Project,
    ProjectStatus,
    ProjectType,
    ServiceType,
)
from opsdash.services.transforms import (
    TRANSFORMS,
    coerce_bool,
    coerce_number,
    customer_from_row,
    customer_to_row,
    from_remote_row,
    kind_of,
    to_remote_row,
)


SAMPLES = [
    Customer(
        company_name="Acme",
        country="NL",
        service_type=ServiceType.MIXED,
        status=CustomerStatus.OPTED_OUT,
        maintenance=True,
        monthly_revenue=1250.5,
        notes="Key account",
        business_start_date="2024-02-01",
        project_payment=PaymentInfo(estimated_cost=5000, amount_paid=2500),
        maintenance_payment=PaymentInfo(estimated_cost=150, amount_paid=150),
        maintenance_due_date="2026-11-01",
        maintenance_paid_months=["2026-09", "2026-10"],
    ),
    Automation(
        client_name="Acme",
        automation_name="Invoice sync",
        runtime=12.5,
        execution_count=340,
        status=AutomationStatus.WARNING,
        manual_intervention=True,
    ),
    Project(
        client_name="Acme",
        project_name="Webshop",
        status=ProjectStatus.LIVE,
        revenue=8000,
        project_type=ProjectType.SOFTWARE,
        start_date="2026-01-15",
    ),
    Expense(category="Hosting", description="VPS", amount=49.9, recurring=True),
    Expense(category="Legal", amount=300, due_date="2026-10-31", is_paid=True),
    Note(content="Renew domain", note_type=NoteType.REMINDER, date="2026-12-01"),
    PaymentHistory(
        customer_id="c-1",
        customer_name="Acme",
        payment_type=PaymentType.NEW_REQUIREMENT,
        amount=400,
        date="2026-10-02",
        notes="Extra page",
    ),
    Budget(category="Hosting", monthly_target=100, month="2026-10"),
]


class TestRoundTrip:
    """from_row(to_row(e)) == e for every kind."""

    @pytest.mark.parametrize("entity", SAMPLES, ids=lambda e: type(e).__name__)
    def test_round_trip(self, entity):
        kind = kind_of(entity)
        assert from_remote_row(kind, to_remote_row(entity)) == entity

    def test_every_kind_registered(self):
        assert set(TRANSFORMS) == set(EntityKind)

    def test_default_entities_round_trip(self):
        """Test that entities with empty optional fields survive the trip."""
        customer = Customer(company_name="Bare")
        assert customer_from_row(customer_to_row(customer)) == customer


class TestRowShape:
    """Tests for the flat snake_case row layout."""

    def test_customer_row_is_flat(self):
        row = customer_to_row(SAMPLES[0])
        assert row["company_name"] == "Acme"
        assert row["project_payment_estimated_cost"] == 5000
        assert row["maintenance_paid_months"] == ["2026-09", "2026-10"]
        assert "projectPayment" not in row

    def test_empty_dates_sent_as_null(self):
        row = customer_to_row(Customer(company_name="Bare"))
        assert row["closing_date"] is None
        assert row["maintenance_due_date"] is None

    def test_type_column(self):
        assert to_remote_row(SAMPLES[2])["type"] == "Software"
        assert to_remote_row(SAMPLES[5])["type"] == "reminder"

    def test_kind_of_rejects_non_entities(self):
        with pytest.raises(TypeError):
            kind_of(PaymentInfo())


class TestCoercion:
    """Malformed remote values decode to safe defaults."""

    @pytest.mark.parametrize("value", [None, "", "abc", "NaN", float("nan"), float("inf"), True, [1]])
    def test_bad_numbers_become_zero(self, value):
        assert coerce_number(value) == 0.0

    def test_numeric_strings_parse(self):
        assert coerce_number("12.50") == 12.5
        assert coerce_number(7) == 7.0

    def test_bool_strings(self):
        assert coerce_bool("true") is True
        assert coerce_bool("false") is False
        assert coerce_bool(None) is False

    def test_sparse_customer_row(self):
        """Test that a row with only an id decodes without NaN or None."""
        customer = customer_from_row({"id": "c-1", "monthly_revenue": "oops"})
        assert customer.monthly_revenue == 0.0
        assert not math.isnan(customer.project_payment.estimated_cost)
        assert customer.notes == ""
        assert customer.closing_date == ""
        assert customer.maintenance_paid_months == []

    def test_unknown_enum_falls_back(self):
        customer = customer_from_row({"id": "c-1", "status": "Archived", "service_type": "?"})
        assert customer.status == CustomerStatus.ACTIVE
        assert customer.service_type == ServiceType.WEBSITE

    def test_malformed_month_tokens_dropped(self):
        customer = customer_from_row(
            {"id": "c-1", "maintenance_paid_months": ["2026-01", "bogus", "2026-01", None]}
        )
        assert customer.maintenance_paid_months == ["2026-01"]

    def test_non_list_month_tokens(self):
        customer = customer_from_row({"id": "c-1", "maintenance_paid_months": "2026-01"})
        assert customer.maintenance_paid_months == []

    @pytest.mark.parametrize("category", ["", "   ", None])
    def test_blank_expense_category_decodes_as_other(self, category):
        expense = from_remote_row(EntityKind.EXPENSES, {"id": "e-1", "category": category})
        assert expense.category == "Other"

    def test_row_without_id_rejected(self):
        with pytest.raises(ValidationError):
            from_remote_row(EntityKind.EXPENSES, {"amount": 10})

    def test_budget_with_bad_month_rejected(self):
        with pytest.raises(ValidationError):
            from_remote_row(EntityKind.BUDGETS, {"id": "b-1", "category": "X", "month": "May"})
