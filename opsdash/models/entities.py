"""
Core Entity Models for the Operations Dashboard

Seven base entity kinds live in the dashboard state. Each is a pydantic
model with snake_case attributes and a camelCase alias, so that:
1. Python code reads naturally (customer.monthly_revenue)
2. The camelCase dump is the local cache document shape (monthlyRevenue)
3. Records are validated when collaborators build them

Identifiers are strings assigned at creation and never reused.
Optional dates are ISO strings; an absent date is the empty string so
that nothing undefined leaks into aggregate math.
"""

import re
from datetime import date
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


MONTH_TOKEN_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def new_entity_id() -> str:
    """Generate a fresh entity identifier."""
    return str(uuid4())


def is_month_token(value: str) -> bool:
    """True for a well-formed 'YYYY-MM' token."""
    return bool(MONTH_TOKEN_PATTERN.match(value or ""))


def month_token(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse an ISO date string leniently.

    Accepts 'YYYY-MM-DD' and full ISO timestamps; returns None for
    empty or unparsable values.
    """
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class EntityKind(str, Enum):
    """
    The seven base entity kinds.

    The value is the remote table name; `local_table` is the camelCase
    collection name used by the local cache.
    """
    CUSTOMERS = "customers"
    AUTOMATIONS = "automations"
    PROJECTS = "projects"
    EXPENSES = "expenses"
    NOTES = "notes"
    PAYMENT_HISTORY = "payment_history"
    BUDGETS = "budgets"

    @property
    def remote_table(self) -> str:
        return self.value

    @property
    def local_table(self) -> str:
        return to_camel(self.value)


class ServiceType(str, Enum):
    WEBSITE = "Website"
    SOFTWARE = "Software"
    AUTOMATION = "Automation"
    MIXED = "Mixed"


class CustomerStatus(str, Enum):
    ACTIVE = "Active"
    PAUSED = "Paused"
    OPTED_OUT = "Opted Out"


class AutomationStatus(str, Enum):
    HEALTHY = "Healthy"
    WARNING = "Warning"
    FAILED = "Failed"


class ProjectStatus(str, Enum):
    LIVE = "Live"
    DEVELOPMENT = "Development"
    PAUSED = "Paused"
    COMPLETED = "Completed"


class ProjectType(str, Enum):
    WEBSITE = "Website"
    SOFTWARE = "Software"
    AUTOMATION = "Automation"


class NoteType(str, Enum):
    NOTE = "note"
    TODO = "todo"
    REMINDER = "reminder"


class PaymentType(str, Enum):
    """Payment categories. Maintenance is the only recurring one."""
    PROJECT = "project"
    MAINTENANCE = "maintenance"
    NEW_REQUIREMENT = "newRequirement"


# =============================================================================
# BASE MODEL
# =============================================================================

class DashboardModel(BaseModel):
    """
    Shared configuration: camelCase aliases, population by either name.

    Models are frozen. An edit is a model_copy(update=...), so the previous
    snapshot handed to compute_delta can never change underneath it.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True,
    )

    def to_document(self) -> dict:
        """camelCase JSON-compatible dict (local cache shape)."""
        return self.model_dump(by_alias=True, mode="json")


class Entity(DashboardModel):
    """A base entity with a stable string identifier."""

    id: str = Field(
        default_factory=new_entity_id,
        min_length=1,
        description="Stable unique identifier"
    )


class PaymentInfo(DashboardModel):
    """Estimated vs. collected amounts for one payment category."""

    estimated_cost: float = Field(default=0.0, description="Agreed amount")
    amount_paid: float = Field(default=0.0, description="Amount collected so far")

    @property
    def remaining(self) -> float:
        return max(0.0, self.estimated_cost - self.amount_paid)


# =============================================================================
# ENTITIES
# =============================================================================

class Customer(Entity):
    company_name: str = ""
    country: str = ""
    service_type: ServiceType = ServiceType.WEBSITE
    status: CustomerStatus = CustomerStatus.ACTIVE
    maintenance: bool = False
    monthly_revenue: float = 0.0
    notes: str = ""
    business_start_date: str = ""
    closing_date: str = ""

    # Financial sub-records
    project_payment: PaymentInfo = Field(default_factory=PaymentInfo)
    maintenance_payment: PaymentInfo = Field(default_factory=PaymentInfo)
    new_requirement_payment: PaymentInfo = Field(default_factory=PaymentInfo)
    maintenance_due_date: str = ""
    maintenance_paid_months: list[str] = Field(
        default_factory=list,
        description="Paid maintenance months as 'YYYY-MM' tokens"
    )

    @field_validator("maintenance_paid_months")
    @classmethod
    def validate_paid_months(cls, v: list[str]) -> list[str]:
        """Tokens must be YYYY-MM; duplicates collapse to the first one."""
        seen: list[str] = []
        for token in v:
            token = token.strip()
            if not is_month_token(token):
                raise ValueError(f"Invalid month token: {token!r}")
            if token not in seen:
                seen.append(token)
        return seen

    def payment(self, payment_type: PaymentType) -> PaymentInfo:
        """The PaymentInfo sub-record tracking a payment type."""
        return getattr(self, PAYMENT_FIELDS[payment_type])

    def has_paid_month(self, month: str) -> bool:
        return month in self.maintenance_paid_months


class Automation(Entity):
    client_name: str = ""
    automation_name: str = ""
    runtime: float = 0.0
    execution_count: int = 0
    status: AutomationStatus = AutomationStatus.HEALTHY
    manual_intervention: bool = False


class Project(Entity):
    client_name: str = ""
    project_name: str = ""
    status: ProjectStatus = ProjectStatus.DEVELOPMENT
    maintenance: bool = False
    revenue: float = 0.0
    notes: str = ""
    project_type: ProjectType = Field(
        default=ProjectType.WEBSITE,
        alias="type",
        validation_alias=AliasChoices("type", "project_type"),
    )
    start_date: str = ""


class Expense(Entity):
    category: str = Field(default="Other", min_length=1)
    description: str = ""
    amount: float = 0.0
    recurring: bool = False
    due_date: str = ""
    is_paid: bool = False


class Note(Entity):
    content: str = ""
    note_type: NoteType = Field(
        default=NoteType.NOTE,
        alias="type",
        validation_alias=AliasChoices("type", "note_type"),
    )
    completed: bool = False
    date: str = ""


class PaymentHistory(Entity):
    """A collected payment. Append-mostly, newest first by convention."""
    customer_id: str = ""
    customer_name: str = ""
    payment_type: PaymentType = PaymentType.PROJECT
    amount: float = 0.0
    date: str = ""
    notes: str = ""


class Budget(Entity):
    """Monthly expense target. At most one per (category, month)."""
    category: str = Field(..., min_length=1)
    monthly_target: float = 0.0
    month: str

    @field_validator("month")
    @classmethod
    def validate_month(cls, v: str) -> str:
        if not is_month_token(v):
            raise ValueError(f"Invalid month token: {v!r}")
        return v


PAYMENT_FIELDS: dict[PaymentType, str] = {
    PaymentType.PROJECT: "project_payment",
    PaymentType.MAINTENANCE: "maintenance_payment",
    PaymentType.NEW_REQUIREMENT: "new_requirement_payment",
}

ENTITY_MODELS: dict[EntityKind, type[Entity]] = {
    EntityKind.CUSTOMERS: Customer,
    EntityKind.AUTOMATIONS: Automation,
    EntityKind.PROJECTS: Project,
    EntityKind.EXPENSES: Expense,
    EntityKind.NOTES: Note,
    EntityKind.PAYMENT_HISTORY: PaymentHistory,
    EntityKind.BUDGETS: Budget,
}


class DashboardCollections(BaseModel):
    """The seven base collections, keyed by entity kind."""

    customers: list[Customer] = Field(default_factory=list)
    automations: list[Automation] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)
    notes: list[Note] = Field(default_factory=list)
    payment_history: list[PaymentHistory] = Field(default_factory=list)
    budgets: list[Budget] = Field(default_factory=list)

    def get(self, kind: EntityKind) -> list[Entity]:
        return getattr(self, kind.value)

    def replace(self, kind: EntityKind, items: list[Entity]) -> None:
        setattr(self, kind.value, list(items))

    @classmethod
    def from_mapping(cls, mapping: dict[EntityKind, list[Entity]]) -> "DashboardCollections":
        return cls(**{kind.value: list(items) for kind, items in mapping.items()})

    def counts(self) -> dict[str, int]:
        return {kind.value: len(self.get(kind)) for kind in EntityKind}
