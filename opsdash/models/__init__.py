"""
Data Models Package

Entity, aggregate and sync event models used across the dashboard.
"""

from opsdash.models.entities import (
    ENTITY_MODELS,
    PAYMENT_FIELDS,
    Automation,
    AutomationStatus,
    Budget,
    Customer,
    CustomerStatus,
    DashboardCollections,
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
    month_token,
    new_entity_id,
    parse_iso_date,
)
from opsdash.models.aggregates import (
    AutomationKPIs,
    ChartData,
    CustomerKPIs,
    DashboardAggregates,
    DistributionSlice,
    FinancialKPIs,
    FinancialTotals,
    PeriodTotals,
    RevenueExpensePoint,
    StatusCount,
    ViewMode,
)
from opsdash.models.sync_events import (
    SyncEvent,
    SyncEventBuilder,
    SyncEventType,
    SyncSeverity,
    SyncTarget,
)

__all__ = [
    # Entities
    "ENTITY_MODELS",
    "PAYMENT_FIELDS",
    "Automation",
    "AutomationStatus",
    "Budget",
    "Customer",
    "CustomerStatus",
    "DashboardCollections",
    "Entity",
    "EntityKind",
    "Expense",
    "Note",
    "NoteType",
    "PaymentHistory",
    "PaymentInfo",
    "PaymentType",
    "Project",
    "ProjectStatus",
    "ProjectType",
    "ServiceType",
    "is_month_token",
    "month_token",
    "new_entity_id",
    "parse_iso_date",
    # Aggregates
    "AutomationKPIs",
    "ChartData",
    "CustomerKPIs",
    "DashboardAggregates",
    "DistributionSlice",
    "FinancialKPIs",
    "FinancialTotals",
    "PeriodTotals",
    "RevenueExpensePoint",
    "StatusCount",
    "ViewMode",
    # Sync events
    "SyncEvent",
    "SyncEventBuilder",
    "SyncEventType",
    "SyncSeverity",
    "SyncTarget",
]
