"""
Financial report export.

Renders the customers' payment positions as CSV, one row per customer
and a closing TOTAL row.
"""

import csv
import io
from typing import Optional

from opsdash.aggregates.engine import compute_financial_totals
from opsdash.models.aggregates import FinancialTotals
from opsdash.models.entities import Customer, CustomerStatus, parse_iso_date


CSV_HEADERS = [
    "Customer",
    "Service Type",
    "Status",
    "Project Estimated ($)",
    "Project Paid ($)",
    "Project Remaining ($)",
    "Maintenance Estimated ($)",
    "Maintenance Paid ($)",
    "Maintenance Remaining ($)",
    "Maintenance Due Date",
    "New Req. Estimated ($)",
    "New Req. Paid ($)",
    "New Req. Remaining ($)",
    "Total Estimated ($)",
    "Total Paid ($)",
    "Total Remaining ($)",
]


def remaining(estimated: float, paid: float) -> float:
    return max(0.0, estimated - paid)


def _customer_row(customer: Customer) -> list:
    project = customer.project_payment
    maintenance = customer.maintenance_payment
    new_req = customer.new_requirement_payment
    total_estimated = project.estimated_cost + maintenance.estimated_cost + new_req.estimated_cost
    total_paid = project.amount_paid + maintenance.amount_paid + new_req.amount_paid
    due = parse_iso_date(customer.maintenance_due_date)

    return [
        customer.company_name,
        customer.service_type.value,
        customer.status.value,
        project.estimated_cost,
        project.amount_paid,
        project.remaining,
        maintenance.estimated_cost,
        maintenance.amount_paid,
        maintenance.remaining,
        due.isoformat() if due else "",
        new_req.estimated_cost,
        new_req.amount_paid,
        new_req.remaining,
        total_estimated,
        total_paid,
        remaining(total_estimated, total_paid),
    ]


def _total_row(totals: FinancialTotals) -> list:
    return [
        "TOTAL",
        "",
        "",
        totals.total_project_estimated,
        totals.total_project_paid,
        remaining(totals.total_project_estimated, totals.total_project_paid),
        totals.total_maintenance_estimated,
        totals.total_maintenance_paid,
        remaining(totals.total_maintenance_estimated, totals.total_maintenance_paid),
        "",
        totals.total_new_req_estimated,
        totals.total_new_req_paid,
        remaining(totals.total_new_req_estimated, totals.total_new_req_paid),
        totals.total_estimated,
        totals.total_paid,
        totals.total_remaining,
    ]


def export_financials_csv(
    customers: list[Customer],
    totals: Optional[FinancialTotals] = None,
) -> str:
    """
    Build the financial report for Active customers.

    Args:
        customers: All customers; non-Active ones are skipped
        totals: Precomputed totals, computed from `customers` if omitted

    Returns:
        CSV text with a header row, one row per customer and a TOTAL row
    """
    active = [c for c in customers if c.status == CustomerStatus.ACTIVE]
    if totals is None:
        totals = compute_financial_totals(active)

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for customer in active:
        writer.writerow(_customer_row(customer))
    writer.writerow(_total_row(totals))
    return buffer.getvalue()
