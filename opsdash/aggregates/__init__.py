"""Aggregate engine and report export."""

from opsdash.aggregates.engine import (
    compute_all,
    compute_automation_kpis,
    compute_chart_data,
    compute_customer_kpis,
    compute_financial_kpis,
    compute_financial_totals,
    compute_period_expenses,
    compute_period_totals,
    customers_needing_reminders,
    monthly_recurring_revenue,
    period_bounds,
)
from opsdash.aggregates.export import export_financials_csv

__all__ = [
    "compute_all",
    "compute_automation_kpis",
    "compute_chart_data",
    "compute_customer_kpis",
    "compute_financial_kpis",
    "compute_financial_totals",
    "compute_period_expenses",
    "compute_period_totals",
    "customers_needing_reminders",
    "export_financials_csv",
    "monthly_recurring_revenue",
    "period_bounds",
]
