"""
Aggregate Engine

Pure functions from base collections to derived dashboard values.

DESIGN DECISION: Nothing here reads the clock. Every function that depends
on "this month" takes `today` explicitly, so that:
1. Two calls on the same inputs are bit-identical
2. Tests pin the calendar without patching
3. The state container decides when "now" is

All money sums go through math.fsum, which is exact-rounded and therefore
independent of summation order.
"""

import calendar
import math
from datetime import date
from typing import Iterable, Optional

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
from opsdash.models.entities import (
    Automation,
    AutomationStatus,
    Customer,
    CustomerStatus,
    DashboardCollections,
    Expense,
    PaymentHistory,
    PaymentType,
    ServiceType,
    month_token,
    parse_iso_date,
)


CHART_MONTHS = 6

ONE_TIME_PAYMENT_TYPES = frozenset({PaymentType.PROJECT, PaymentType.NEW_REQUIREMENT})

PERIOD_MULTIPLIERS: dict[ViewMode, int] = {
    ViewMode.MONTHLY: 1,
    ViewMode.QUARTERLY: 3,
    ViewMode.YEARLY: 12,
}


def _active(customers: Iterable[Customer]) -> list[Customer]:
    return [c for c in customers if c.status == CustomerStatus.ACTIVE]


def _due_in_month(expense: Expense, year: int, month: int) -> bool:
    due = parse_iso_date(expense.due_date)
    return due is not None and due.year == year and due.month == month


def _shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    """Move a (year, month) pair by `offset` months."""
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def monthly_recurring_revenue(customers: Iterable[Customer]) -> float:
    return math.fsum(c.monthly_revenue for c in _active(customers))


# =============================================================================
# KPI SETS
# =============================================================================

def compute_customer_kpis(
    customers: list[Customer],
    expenses: list[Expense],
    today: date,
) -> CustomerKPIs:
    """
    Customer counts and the monthly revenue/expense/profit line.

    Monthly expenses are recurring expenses plus the ones due this
    calendar month.
    """
    active = _active(customers)
    revenue = math.fsum(c.monthly_revenue for c in active)
    monthly_expenses = math.fsum(
        e.amount
        for e in expenses
        if e.recurring or _due_in_month(e, today.year, today.month)
    )
    return CustomerKPIs(
        total_customers=len(customers),
        active_customers=len(active),
        opted_out_customers=sum(1 for c in customers if c.status == CustomerStatus.OPTED_OUT),
        customers_without_maintenance=sum(1 for c in active if not c.maintenance),
        monthly_revenue=revenue,
        monthly_expenses=monthly_expenses,
        net_profit=revenue - monthly_expenses,
    )


def compute_automation_kpis(automations: list[Automation]) -> AutomationKPIs:
    return AutomationKPIs(
        total_automations=len(automations),
        monthly_runtime=math.fsum(a.runtime for a in automations),
        monthly_executions=sum(a.execution_count for a in automations),
        failed_automations=sum(1 for a in automations if a.status == AutomationStatus.FAILED),
    )


def compute_financial_kpis(
    customers: list[Customer],
    payment_history: list[PaymentHistory],
    expenses: list[Expense],
) -> FinancialKPIs:
    """
    MRR, one-time revenue and net profit.

    Maintenance payments are recurring revenue and already part of MRR,
    so only project and new-requirement payments count as one-time.
    """
    mrr = monthly_recurring_revenue(customers)
    one_time = math.fsum(
        p.amount for p in payment_history if p.payment_type in ONE_TIME_PAYMENT_TYPES
    )
    total_expenses = math.fsum(e.amount for e in expenses)
    return FinancialKPIs(
        mrr=mrr,
        one_time_revenue=one_time,
        total_expenses=total_expenses,
        net_profit=mrr + one_time - total_expenses,
    )


# =============================================================================
# CHART SERIES
# =============================================================================

def compute_revenue_expense_series(
    customers: list[Customer],
    expenses: list[Expense],
    today: date,
    months: int = CHART_MONTHS,
) -> list[RevenueExpensePoint]:
    """
    Trailing calendar months, oldest first, current month last.

    There is no revenue ledger, so every bucket carries the current MRR.
    """
    mrr = monthly_recurring_revenue(customers)
    points = []
    for offset in range(-(months - 1), 1):
        year, month = _shift_month(today.year, today.month, offset)
        points.append(
            RevenueExpensePoint(
                month=calendar.month_abbr[month],
                period=f"{year:04d}-{month:02d}",
                revenue=mrr,
                expenses=math.fsum(e.amount for e in expenses if _due_in_month(e, year, month)),
            )
        )
    return points


def compute_service_distribution(customers: list[Customer]) -> list[DistributionSlice]:
    """Percentage share per service type present, rounded to one decimal."""
    total = len(customers)
    if total == 0:
        return []
    slices = []
    for service_type in ServiceType:
        count = sum(1 for c in customers if c.service_type == service_type)
        if count:
            slices.append(
                DistributionSlice(name=service_type.value, value=round(count * 100 / total, 1))
            )
    return slices


def compute_status_distribution(customers: list[Customer]) -> list[StatusCount]:
    """Count per status, every status listed."""
    return [
        StatusCount(status=status.value, count=sum(1 for c in customers if c.status == status))
        for status in CustomerStatus
    ]


def compute_chart_data(
    customers: list[Customer],
    expenses: list[Expense],
    today: date,
) -> ChartData:
    return ChartData(
        revenue_expenses=compute_revenue_expense_series(customers, expenses, today),
        service_distribution=compute_service_distribution(customers),
        customer_status=compute_status_distribution(customers),
    )


# =============================================================================
# FINANCIALS
# =============================================================================

def compute_financial_totals(customers: list[Customer]) -> FinancialTotals:
    active = _active(customers)
    return FinancialTotals(
        total_project_estimated=math.fsum(c.project_payment.estimated_cost for c in active),
        total_project_paid=math.fsum(c.project_payment.amount_paid for c in active),
        total_maintenance_estimated=math.fsum(c.maintenance_payment.estimated_cost for c in active),
        total_maintenance_paid=math.fsum(c.maintenance_payment.amount_paid for c in active),
        total_new_req_estimated=math.fsum(c.new_requirement_payment.estimated_cost for c in active),
        total_new_req_paid=math.fsum(c.new_requirement_payment.amount_paid for c in active),
    )


def period_bounds(view_mode: ViewMode, today: date) -> tuple[date, date]:
    """First and last day of the month, quarter or year containing `today`."""
    if view_mode == ViewMode.YEARLY:
        return date(today.year, 1, 1), date(today.year, 12, 31)
    if view_mode == ViewMode.QUARTERLY:
        first_month = (today.month - 1) // 3 * 3 + 1
        last_month = first_month + 2
    else:
        first_month = last_month = today.month
    last_day = calendar.monthrange(today.year, last_month)[1]
    return date(today.year, first_month, 1), date(today.year, last_month, last_day)


def compute_period_totals(
    payment_history: list[PaymentHistory],
    view_mode: ViewMode,
    today: date,
) -> PeriodTotals:
    """Collected payments dated inside the current period, by type."""
    start, end = period_bounds(view_mode, today)
    in_period = []
    for payment in payment_history:
        paid_on = parse_iso_date(payment.date)
        if paid_on is not None and start <= paid_on <= end:
            in_period.append(payment)

    def by_type(payment_type: PaymentType) -> float:
        return math.fsum(p.amount for p in in_period if p.payment_type == payment_type)

    return PeriodTotals(
        view_mode=view_mode,
        total_revenue=math.fsum(p.amount for p in in_period),
        project_revenue=by_type(PaymentType.PROJECT),
        maintenance_revenue=by_type(PaymentType.MAINTENANCE),
        new_requirement_revenue=by_type(PaymentType.NEW_REQUIREMENT),
        transaction_count=len(in_period),
    )


def compute_period_expenses(expenses: list[Expense], view_mode: ViewMode) -> float:
    """Recurring expenses scaled to the period; one-off expenses count once."""
    multiplier = PERIOD_MULTIPLIERS[view_mode]
    return math.fsum(e.amount * multiplier if e.recurring else e.amount for e in expenses)


def customers_needing_reminders(customers: list[Customer], today: date) -> list[Customer]:
    """
    Active maintenance customers to follow up with.

    A customer needs a reminder when this month is unpaid or the
    maintenance due date has passed.
    """
    current = month_token(today)
    reminders = []
    for customer in _active(customers):
        if not customer.maintenance:
            continue
        due = parse_iso_date(customer.maintenance_due_date)
        if not customer.has_paid_month(current) or (due is not None and due < today):
            reminders.append(customer)
    return reminders


def compute_all(collections: DashboardCollections, today: Optional[date] = None) -> DashboardAggregates:
    """Every derived value for one snapshot of the collections."""
    today = today or date.today()
    return DashboardAggregates(
        kpis=compute_customer_kpis(collections.customers, collections.expenses, today),
        automation_kpis=compute_automation_kpis(collections.automations),
        financial_kpis=compute_financial_kpis(
            collections.customers, collections.payment_history, collections.expenses
        ),
        chart_data=compute_chart_data(collections.customers, collections.expenses, today),
        financial_totals=compute_financial_totals(collections.customers),
        payment_reminders=[c.id for c in customers_needing_reminders(collections.customers, today)],
    )
