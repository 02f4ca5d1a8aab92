"""
Derived Aggregate Models

These are never persisted: the aggregate engine rebuilds them from the
base collections after every change. Field aliases match the camelCase
names the dashboard UI reads.
"""

from enum import Enum

from pydantic import Field

from opsdash.models.entities import DashboardModel


class ViewMode(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class CustomerKPIs(DashboardModel):
    total_customers: int = 0
    active_customers: int = 0
    opted_out_customers: int = 0
    customers_without_maintenance: int = 0
    monthly_revenue: float = 0.0
    monthly_expenses: float = 0.0
    net_profit: float = 0.0


class AutomationKPIs(DashboardModel):
    total_automations: int = 0
    monthly_runtime: float = 0.0
    monthly_executions: int = 0
    failed_automations: int = 0


class FinancialKPIs(DashboardModel):
    mrr: float = 0.0
    one_time_revenue: float = 0.0
    total_expenses: float = 0.0
    net_profit: float = 0.0


class RevenueExpensePoint(DashboardModel):
    month: str = Field(..., description="Short month label, e.g. 'Jan'")
    period: str = Field(..., description="Calendar month as 'YYYY-MM'")
    revenue: float = 0.0
    expenses: float = 0.0


class DistributionSlice(DashboardModel):
    name: str
    value: float


class StatusCount(DashboardModel):
    status: str
    count: int


class ChartData(DashboardModel):
    revenue_expenses: list[RevenueExpensePoint] = Field(default_factory=list)
    service_distribution: list[DistributionSlice] = Field(default_factory=list)
    customer_status: list[StatusCount] = Field(default_factory=list)


class FinancialTotals(DashboardModel):
    """Estimated vs. paid sums over Active customers."""
    total_project_estimated: float = 0.0
    total_project_paid: float = 0.0
    total_maintenance_estimated: float = 0.0
    total_maintenance_paid: float = 0.0
    total_new_req_estimated: float = 0.0
    total_new_req_paid: float = 0.0

    @property
    def total_estimated(self) -> float:
        return (
            self.total_project_estimated
            + self.total_maintenance_estimated
            + self.total_new_req_estimated
        )

    @property
    def total_paid(self) -> float:
        return self.total_project_paid + self.total_maintenance_paid + self.total_new_req_paid

    @property
    def total_remaining(self) -> float:
        return max(0.0, self.total_estimated - self.total_paid)


class PeriodTotals(DashboardModel):
    """Collected payments inside the current month, quarter or year."""
    view_mode: ViewMode = ViewMode.MONTHLY
    total_revenue: float = 0.0
    project_revenue: float = 0.0
    maintenance_revenue: float = 0.0
    new_requirement_revenue: float = 0.0
    transaction_count: int = 0


class DashboardAggregates(DashboardModel):
    """Everything derived from the base collections at one instant."""
    kpis: CustomerKPIs = Field(default_factory=CustomerKPIs)
    automation_kpis: AutomationKPIs = Field(default_factory=AutomationKPIs)
    financial_kpis: FinancialKPIs = Field(default_factory=FinancialKPIs)
    chart_data: ChartData = Field(default_factory=ChartData)
    financial_totals: FinancialTotals = Field(default_factory=FinancialTotals)
    payment_reminders: list[str] = Field(
        default_factory=list,
        description="Ids of Active customers whose maintenance payment is outstanding"
    )
