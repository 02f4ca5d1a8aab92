"""
Entity Transform Layer

Pure mappings between the in-memory entity models and the flat
snake_case rows of the remote store. One (to_row, from_row) pair per
entity kind, registered in TRANSFORMS.

Rules for decoding remote rows:
- Numeric fields are coerced; unparsable, NaN and infinite values become 0
- Missing optional strings become "", missing lists become []
- Unknown enum values fall back to the model's default member
- Malformed 'YYYY-MM' tokens are dropped

Empty optional dates are written as NULL, since the remote columns are
typed dates, and decode back to "".
"""

import math
from enum import Enum
from typing import Any, Callable, NamedTuple, Optional, TypeVar

from opsdash.models.entities import (
    Automation,
    AutomationStatus,
    Budget,
    Customer,
    CustomerStatus,
    Entity,
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
    is_month_token,
)


E = TypeVar("E", bound=Enum)

RemoteRow = dict[str, Any]


# =============================================================================
# COERCION HELPERS
# =============================================================================

def coerce_number(value: Any, default: float = 0.0) -> float:
    """
    Coerce a remote value to a finite float.

    Numeric columns may arrive as strings (Postgres numeric). Anything
    that does not parse to a finite number yields the default.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def coerce_int(value: Any, default: int = 0) -> int:
    return int(coerce_number(value, float(default)))


def coerce_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "t", "1", "yes")
    return bool(value)


def coerce_enum(enum_cls: type[E], value: Any, default: E) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        return default


def coerce_month_tokens(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    tokens: list[str] = []
    for token in value:
        token = coerce_str(token)
        if is_month_token(token) and token not in tokens:
            tokens.append(token)
    return tokens


def _nullable(value: str) -> Optional[str]:
    return value or None


# =============================================================================
# CUSTOMER
# =============================================================================

def customer_to_row(customer: Customer) -> RemoteRow:
    return {
        "id": customer.id,
        "company_name": customer.company_name,
        "country": customer.country,
        "service_type": customer.service_type.value,
        "status": customer.status.value,
        "maintenance": customer.maintenance,
        "monthly_revenue": customer.monthly_revenue,
        "notes": customer.notes,
        "business_start_date": _nullable(customer.business_start_date),
        "closing_date": _nullable(customer.closing_date),
        "project_payment_estimated_cost": customer.project_payment.estimated_cost,
        "project_payment_amount_paid": customer.project_payment.amount_paid,
        "maintenance_payment_estimated_cost": customer.maintenance_payment.estimated_cost,
        "maintenance_payment_amount_paid": customer.maintenance_payment.amount_paid,
        "new_requirement_payment_estimated_cost": customer.new_requirement_payment.estimated_cost,
        "new_requirement_payment_amount_paid": customer.new_requirement_payment.amount_paid,
        "maintenance_due_date": _nullable(customer.maintenance_due_date),
        "maintenance_paid_months": list(customer.maintenance_paid_months),
    }


def _payment_from_row(row: RemoteRow, prefix: str) -> PaymentInfo:
    return PaymentInfo(
        estimated_cost=coerce_number(row.get(f"{prefix}_estimated_cost")),
        amount_paid=coerce_number(row.get(f"{prefix}_amount_paid")),
    )


def customer_from_row(row: RemoteRow) -> Customer:
    return Customer(
        id=coerce_str(row.get("id")),
        company_name=coerce_str(row.get("company_name")),
        country=coerce_str(row.get("country")),
        service_type=coerce_enum(ServiceType, row.get("service_type"), ServiceType.WEBSITE),
        status=coerce_enum(CustomerStatus, row.get("status"), CustomerStatus.ACTIVE),
        maintenance=coerce_bool(row.get("maintenance")),
        monthly_revenue=coerce_number(row.get("monthly_revenue")),
        notes=coerce_str(row.get("notes")),
        business_start_date=coerce_str(row.get("business_start_date")),
        closing_date=coerce_str(row.get("closing_date")),
        project_payment=_payment_from_row(row, "project_payment"),
        maintenance_payment=_payment_from_row(row, "maintenance_payment"),
        new_requirement_payment=_payment_from_row(row, "new_requirement_payment"),
        maintenance_due_date=coerce_str(row.get("maintenance_due_date")),
        maintenance_paid_months=coerce_month_tokens(row.get("maintenance_paid_months")),
    )


# =============================================================================
# AUTOMATION
# =============================================================================

def automation_to_row(automation: Automation) -> RemoteRow:
    return {
        "id": automation.id,
        "client_name": automation.client_name,
        "automation_name": automation.automation_name,
        "runtime": automation.runtime,
        "execution_count": automation.execution_count,
        "status": automation.status.value,
        "manual_intervention": automation.manual_intervention,
    }


def automation_from_row(row: RemoteRow) -> Automation:
    return Automation(
        id=coerce_str(row.get("id")),
        client_name=coerce_str(row.get("client_name")),
        automation_name=coerce_str(row.get("automation_name")),
        runtime=coerce_number(row.get("runtime")),
        execution_count=coerce_int(row.get("execution_count")),
        status=coerce_enum(AutomationStatus, row.get("status"), AutomationStatus.HEALTHY),
        manual_intervention=coerce_bool(row.get("manual_intervention")),
    )


# =============================================================================
# PROJECT
# =============================================================================

def project_to_row(project: Project) -> RemoteRow:
    return {
        "id": project.id,
        "client_name": project.client_name,
        "project_name": project.project_name,
        "status": project.status.value,
        "maintenance": project.maintenance,
        "revenue": project.revenue,
        "notes": project.notes,
        "type": project.project_type.value,
        "start_date": _nullable(project.start_date),
    }


def project_from_row(row: RemoteRow) -> Project:
    return Project(
        id=coerce_str(row.get("id")),
        client_name=coerce_str(row.get("client_name")),
        project_name=coerce_str(row.get("project_name")),
        status=coerce_enum(ProjectStatus, row.get("status"), ProjectStatus.DEVELOPMENT),
        maintenance=coerce_bool(row.get("maintenance")),
        revenue=coerce_number(row.get("revenue")),
        notes=coerce_str(row.get("notes")),
        project_type=coerce_enum(ProjectType, row.get("type"), ProjectType.WEBSITE),
        start_date=coerce_str(row.get("start_date")),
    )


# =============================================================================
# EXPENSE
# =============================================================================

def expense_to_row(expense: Expense) -> RemoteRow:
    return {
        "id": expense.id,
        "category": expense.category,
        "description": expense.description,
        "amount": expense.amount,
        "recurring": expense.recurring,
        "due_date": _nullable(expense.due_date),
        "is_paid": expense.is_paid,
    }


def expense_from_row(row: RemoteRow) -> Expense:
    return Expense(
        id=coerce_str(row.get("id")),
        category=coerce_str(row.get("category")) or "Other",
        description=coerce_str(row.get("description")),
        amount=coerce_number(row.get("amount")),
        recurring=coerce_bool(row.get("recurring")),
        due_date=coerce_str(row.get("due_date")),
        is_paid=coerce_bool(row.get("is_paid")),
    )


# =============================================================================
# NOTE
# =============================================================================

def note_to_row(note: Note) -> RemoteRow:
    return {
        "id": note.id,
        "content": note.content,
        "type": note.note_type.value,
        "completed": note.completed,
        "date": _nullable(note.date),
    }


def note_from_row(row: RemoteRow) -> Note:
    return Note(
        id=coerce_str(row.get("id")),
        content=coerce_str(row.get("content")),
        note_type=coerce_enum(NoteType, row.get("type"), NoteType.NOTE),
        completed=coerce_bool(row.get("completed")),
        date=coerce_str(row.get("date")),
    )


# =============================================================================
# PAYMENT HISTORY
# =============================================================================

def payment_history_to_row(payment: PaymentHistory) -> RemoteRow:
    return {
        "id": payment.id,
        "customer_id": payment.customer_id,
        "customer_name": payment.customer_name,
        "payment_type": payment.payment_type.value,
        "amount": payment.amount,
        "date": _nullable(payment.date),
        "notes": payment.notes,
    }


def payment_history_from_row(row: RemoteRow) -> PaymentHistory:
    return PaymentHistory(
        id=coerce_str(row.get("id")),
        customer_id=coerce_str(row.get("customer_id")),
        customer_name=coerce_str(row.get("customer_name")),
        payment_type=coerce_enum(PaymentType, row.get("payment_type"), PaymentType.PROJECT),
        amount=coerce_number(row.get("amount")),
        date=coerce_str(row.get("date")),
        notes=coerce_str(row.get("notes")),
    )


# =============================================================================
# BUDGET
# =============================================================================

def budget_to_row(budget: Budget) -> RemoteRow:
    return {
        "id": budget.id,
        "category": budget.category,
        "monthly_target": budget.monthly_target,
        "month": budget.month,
    }


def budget_from_row(row: RemoteRow) -> Budget:
    # A malformed month cannot be coerced into a meaningful budget;
    # Budget validation raises and the caller drops the row.
    return Budget(
        id=coerce_str(row.get("id")),
        category=coerce_str(row.get("category")) or "Other",
        monthly_target=coerce_number(row.get("monthly_target")),
        month=coerce_str(row.get("month")),
    )


# =============================================================================
# REGISTRY
# =============================================================================

class EntityTransform(NamedTuple):
    to_row: Callable[[Any], RemoteRow]
    from_row: Callable[[RemoteRow], Entity]


TRANSFORMS: dict[EntityKind, EntityTransform] = {
    EntityKind.CUSTOMERS: EntityTransform(customer_to_row, customer_from_row),
    EntityKind.AUTOMATIONS: EntityTransform(automation_to_row, automation_from_row),
    EntityKind.PROJECTS: EntityTransform(project_to_row, project_from_row),
    EntityKind.EXPENSES: EntityTransform(expense_to_row, expense_from_row),
    EntityKind.NOTES: EntityTransform(note_to_row, note_from_row),
    EntityKind.PAYMENT_HISTORY: EntityTransform(payment_history_to_row, payment_history_from_row),
    EntityKind.BUDGETS: EntityTransform(budget_to_row, budget_from_row),
}

_KIND_BY_MODEL: dict[type, EntityKind] = {
    Customer: EntityKind.CUSTOMERS,
    Automation: EntityKind.AUTOMATIONS,
    Project: EntityKind.PROJECTS,
    Expense: EntityKind.EXPENSES,
    Note: EntityKind.NOTES,
    PaymentHistory: EntityKind.PAYMENT_HISTORY,
    Budget: EntityKind.BUDGETS,
}


def kind_of(entity: Entity) -> EntityKind:
    """The entity kind of a model instance."""
    try:
        return _KIND_BY_MODEL[type(entity)]
    except KeyError:
        raise TypeError(f"Not a dashboard entity: {type(entity).__name__}")


def to_remote_row(entity: Entity) -> RemoteRow:
    return TRANSFORMS[kind_of(entity)].to_row(entity)


def from_remote_row(kind: EntityKind, row: RemoteRow) -> Entity:
    return TRANSFORMS[kind].from_row(row)
