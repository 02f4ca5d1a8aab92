"""
Dashboard State Container

Owns the seven base collections and the derived aggregates. It is the
single entry point for collaborators (UI, scripts) to read and mutate
dashboard data.

Flow:
1. initialize() awaits SyncOrchestrator.load_all() and installs the
   result without persisting it back
2. A mutation replaces a whole collection (or applies an explicit delta);
   the delta against the previous snapshot is computed synchronously
3. Aggregates are recomputed and subscribers are notified immediately
4. Persistence (local cache, remote store, deletions) is queued per kind
   and runs in the background, in mutation order

The in-memory copy is authoritative as soon as a mutation returns.
"""

import calendar
from datetime import date
from typing import Any, Callable, Iterable, Optional

import structlog

from opsdash.aggregates.engine import (
    compute_all,
    compute_period_expenses,
    compute_period_totals,
)
from opsdash.aggregates.export import export_financials_csv
from opsdash.audit import SyncAuditLogger, configure_logging, create_correlation_id
from opsdash.config import Settings, get_settings
from opsdash.models.aggregates import (
    AutomationKPIs,
    ChartData,
    CustomerKPIs,
    DashboardAggregates,
    FinancialKPIs,
    FinancialTotals,
    PeriodTotals,
    ViewMode,
)
from opsdash.models.entities import (
    ENTITY_MODELS,
    PAYMENT_FIELDS,
    Automation,
    Budget,
    Customer,
    DashboardCollections,
    Entity,
    EntityKind,
    Expense,
    Note,
    PaymentHistory,
    PaymentType,
    Project,
    is_month_token,
)
from opsdash.services.storage import SQLiteLocalCache, SupabaseClient, SupabaseRemoteStore
from opsdash.sync.deltas import CollectionDelta, apply_delta, compute_delta
from opsdash.sync.orchestrator import SyncOrchestrator
from opsdash.sync.queue import KindWriteQueue


ChangeCallback = Callable[[EntityKind, CollectionDelta], Any]

PAYMENT_INFO_FIELDS = ("estimated_cost", "amount_paid")

logger = structlog.get_logger(__name__)


class DashboardState:
    """
    In-memory dashboard state wired to the sync engine.

    Mutations are synchronous and must be called from the event loop
    thread; their persistence is fire-and-forget (see flush()).
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        write_queue: Optional[KindWriteQueue] = None,
        sync_logger: Optional[SyncAuditLogger] = None,
        clock: Optional[Callable[[], date]] = None,
    ):
        self._orchestrator = orchestrator
        self._queue = write_queue or KindWriteQueue()
        self._logger = sync_logger or SyncAuditLogger()
        self._clock = clock or date.today
        self._collections = DashboardCollections()
        self._aggregates = DashboardAggregates()
        self._subscribers: list[ChangeCallback] = []
        self._initialized = False

    @property
    def orchestrator(self) -> SyncOrchestrator:
        return self._orchestrator

    @property
    def initialized(self) -> bool:
        return self._initialized

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def initialize(self) -> DashboardCollections:
        """Load every collection. The loaded data is not written back."""
        loaded = await self._orchestrator.load_all()
        previous = self._collections
        self._collections = loaded
        self._recompute()
        self._initialized = True
        for kind in EntityKind:
            delta = compute_delta(previous.get(kind), loaded.get(kind))
            if not delta.is_empty:
                self._notify(kind, delta)
        return self.snapshot()

    async def flush(self) -> None:
        """Wait until every queued persistence job has run."""
        await self._queue.drain()

    async def close(self) -> None:
        """Stop the write queue, then release the local cache."""
        await self._queue.close()
        self._orchestrator.close()

    def snapshot(self) -> DashboardCollections:
        """A copy of the current collections (the entities are shared)."""
        return DashboardCollections.from_mapping(
            {kind: self._collections.get(kind) for kind in EntityKind}
        )

    # =========================================================================
    # READS
    # =========================================================================

    def get(self, kind: EntityKind) -> list[Entity]:
        return list(self._collections.get(kind))

    @property
    def customers(self) -> list[Customer]:
        return self.get(EntityKind.CUSTOMERS)

    @property
    def automations(self) -> list[Automation]:
        return self.get(EntityKind.AUTOMATIONS)

    @property
    def projects(self) -> list[Project]:
        return self.get(EntityKind.PROJECTS)

    @property
    def expenses(self) -> list[Expense]:
        return self.get(EntityKind.EXPENSES)

    @property
    def notes(self) -> list[Note]:
        return self.get(EntityKind.NOTES)

    @property
    def payment_history(self) -> list[PaymentHistory]:
        return self.get(EntityKind.PAYMENT_HISTORY)

    @property
    def budgets(self) -> list[Budget]:
        return self.get(EntityKind.BUDGETS)

    @property
    def aggregates(self) -> DashboardAggregates:
        return self._aggregates

    @property
    def kpis(self) -> CustomerKPIs:
        return self._aggregates.kpis

    @property
    def automation_kpis(self) -> AutomationKPIs:
        return self._aggregates.automation_kpis

    @property
    def financial_kpis(self) -> FinancialKPIs:
        return self._aggregates.financial_kpis

    @property
    def chart_data(self) -> ChartData:
        return self._aggregates.chart_data

    @property
    def financial_totals(self) -> FinancialTotals:
        return self._aggregates.financial_totals

    @property
    def payment_reminders(self) -> list[Customer]:
        """Customers with an outstanding maintenance payment."""
        wanted = set(self._aggregates.payment_reminders)
        return [c for c in self._collections.customers if c.id in wanted]

    def period_totals(self, view_mode: ViewMode) -> PeriodTotals:
        return compute_period_totals(self._collections.payment_history, view_mode, self._clock())

    def period_expenses(self, view_mode: ViewMode) -> float:
        return compute_period_expenses(self._collections.expenses, view_mode)

    def export_financials(self) -> str:
        """CSV report of Active customers' payment positions."""
        return export_financials_csv(self._collections.customers, self.financial_totals)

    # =========================================================================
    # MUTATIONS (whole-collection replace)
    # =========================================================================

    def set_collection(self, kind: EntityKind, items: Iterable[Any]) -> CollectionDelta:
        """
        Replace a collection.

        Records missing from `items` are deleted from both stores.

        Args:
            kind: Entity kind to replace
            items: The complete new collection (entities or dicts)

        Returns:
            The delta against the previous collection

        Raises:
            ValueError: If two records share an id
        """
        new_items = self._coerce(kind, items)
        delta = compute_delta(self._collections.get(kind), new_items)
        self._commit(kind, new_items, delta)
        return delta

    def apply_delta(self, kind: EntityKind, delta: CollectionDelta) -> CollectionDelta:
        """
        Apply explicit added/updated/removed changes to a collection.

        Returns the effective delta (updates that changed nothing and
        removals of unknown ids are dropped).
        """
        previous = self._collections.get(kind)
        explicit = CollectionDelta(
            added=self._coerce(kind, delta.added),
            updated=self._coerce(kind, delta.updated),
            removed=list(delta.removed),
        )
        new_items = apply_delta(previous, explicit)
        effective = compute_delta(previous, new_items)
        self._commit(kind, new_items, effective)
        return effective

    def set_customers(self, items: Iterable[Any]) -> CollectionDelta:
        return self.set_collection(EntityKind.CUSTOMERS, items)

    def set_automations(self, items: Iterable[Any]) -> CollectionDelta:
        return self.set_collection(EntityKind.AUTOMATIONS, items)

    def set_projects(self, items: Iterable[Any]) -> CollectionDelta:
        return self.set_collection(EntityKind.PROJECTS, items)

    def set_expenses(self, items: Iterable[Any]) -> CollectionDelta:
        return self.set_collection(EntityKind.EXPENSES, items)

    def set_notes(self, items: Iterable[Any]) -> CollectionDelta:
        return self.set_collection(EntityKind.NOTES, items)

    def set_payment_history(self, items: Iterable[Any]) -> CollectionDelta:
        return self.set_collection(EntityKind.PAYMENT_HISTORY, items)

    def set_budgets(self, items: Iterable[Any]) -> CollectionDelta:
        return self.set_collection(EntityKind.BUDGETS, items)

    # =========================================================================
    # DOMAIN HELPERS
    # =========================================================================

    def add_payment_record(
        self,
        customer_id: str,
        customer_name: str,
        payment_type: PaymentType,
        amount: float,
        payment_date: Optional[str] = None,
        notes: str = "",
    ) -> PaymentHistory:
        """Record a collected payment. Newest records come first."""
        record = PaymentHistory(
            customer_id=customer_id,
            customer_name=customer_name,
            payment_type=payment_type,
            amount=amount,
            date=payment_date or self._clock().isoformat(),
            notes=notes,
        )
        self.set_payment_history([record, *self._collections.payment_history])
        return record

    def upsert_budget(self, category: str, month: str, monthly_target: float) -> Budget:
        """
        Set the target for a (category, month) pair.

        Updates the existing budget for the pair, or adds one.

        Raises:
            ValueError: If the target is not positive or the month is malformed
        """
        category = category.strip()
        if not category:
            raise ValueError("Budget category is required")
        if not is_month_token(month):
            raise ValueError(f"Invalid month token: {month!r}")
        if monthly_target <= 0:
            raise ValueError("Budget target must be greater than zero")

        budgets = self._collections.budgets
        for index, existing in enumerate(budgets):
            if existing.category == category and existing.month == month:
                updated = existing.model_copy(update={"monthly_target": monthly_target})
                self.set_budgets([*budgets[:index], updated, *budgets[index + 1:]])
                return updated

        budget = Budget(category=category, month=month, monthly_target=monthly_target)
        self.set_budgets([*budgets, budget])
        return budget

    def toggle_maintenance_paid(self, customer_id: str, month: str) -> bool:
        """
        Flip the paid state of a maintenance month.

        Marking a month paid also records a maintenance payment of the
        customer's estimated maintenance cost.

        Returns:
            True if the month is now paid

        Raises:
            KeyError: If the customer does not exist
            ValueError: If the month is malformed
        """
        if not is_month_token(month):
            raise ValueError(f"Invalid month token: {month!r}")
        customer = self._find_customer(customer_id)

        was_paid = customer.has_paid_month(month)
        if was_paid:
            months = [m for m in customer.maintenance_paid_months if m != month]
        else:
            months = [*customer.maintenance_paid_months, month]
        self._replace_customer(customer.model_copy(update={"maintenance_paid_months": months}))

        if not was_paid:
            year, month_number = (int(part) for part in month.split("-"))
            self.add_payment_record(
                customer_id=customer.id,
                customer_name=customer.company_name,
                payment_type=PaymentType.MAINTENANCE,
                amount=customer.maintenance_payment.estimated_cost,
                notes=f"Maintenance payment for {calendar.month_name[month_number]} {year}",
            )
        return not was_paid

    def update_customer_payment(
        self,
        customer_id: str,
        payment_type: PaymentType,
        field: str,
        value: float,
    ) -> Customer:
        """
        Edit one PaymentInfo field of a customer.

        An increase of amount_paid records the difference as a payment.

        Raises:
            KeyError: If the customer does not exist
            ValueError: If the field is not a PaymentInfo field
        """
        if field not in PAYMENT_INFO_FIELDS:
            raise ValueError(f"Unknown payment field: {field!r}")
        customer = self._find_customer(customer_id)

        info = customer.payment(payment_type)
        old_value = getattr(info, field)
        payment_attr = PAYMENT_FIELDS[payment_type]
        updated = customer.model_copy(
            update={payment_attr: info.model_copy(update={field: value})}
        )
        self._replace_customer(updated)

        if field == "amount_paid" and value > old_value:
            self.add_payment_record(
                customer_id=customer.id,
                customer_name=customer.company_name,
                payment_type=payment_type,
                amount=value - old_value,
                notes="Payment updated via inline edit",
            )
        return updated

    # =========================================================================
    # CHANGE REACTIONS
    # =========================================================================

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        """
        Register a change reaction, called as callback(kind, delta).

        Returns a function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, kind: EntityKind, delta: CollectionDelta) -> None:
        for callback in list(self._subscribers):
            try:
                callback(kind, delta)
            except Exception:
                logger.exception("state_subscriber_failed", kind=kind.value)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _coerce(self, kind: EntityKind, items: Iterable[Any]) -> list[Entity]:
        model = ENTITY_MODELS[kind]
        entities = [
            item if isinstance(item, model) else model.model_validate(item)
            for item in items
        ]
        seen: set[str] = set()
        for entity in entities:
            if entity.id in seen:
                raise ValueError(f"Duplicate {kind.value} id: {entity.id}")
            seen.add(entity.id)
        return entities

    def _find_customer(self, customer_id: str) -> Customer:
        for customer in self._collections.customers:
            if customer.id == customer_id:
                return customer
        raise KeyError(customer_id)

    def _replace_customer(self, updated: Customer) -> None:
        self.set_customers(
            updated if c.id == updated.id else c for c in self._collections.customers
        )

    def _recompute(self) -> None:
        self._aggregates = compute_all(self._collections, self._clock())

    def _commit(self, kind: EntityKind, items: list[Entity], delta: CollectionDelta) -> None:
        previous_order = [item.id for item in self._collections.get(kind)]
        self._collections.replace(kind, items)
        self._recompute()
        # A pure reorder has an empty delta but still moves cache positions
        reordered = previous_order != [item.id for item in items]
        if not delta.is_empty or reordered:
            self._schedule_persist(kind, list(items), list(delta.removed))
        self._notify(kind, delta)

    def _schedule_persist(self, kind: EntityKind, items: list[Entity], removed: list[str]) -> None:
        correlation_id = create_correlation_id()
        orchestrator = self._orchestrator

        async def persist() -> None:
            await orchestrator.sync_collection(kind, items, correlation_id=correlation_id)
            await orchestrator.propagate_deletions(kind, removed, correlation_id=correlation_id)

        if not self._queue.submit(kind, persist):
            self._logger.log_error(
                "persistence_not_scheduled",
                "No running event loop; change kept in memory only",
                details={"kind": kind.value, "count": len(items)},
                correlation_id=correlation_id,
            )


def create_dashboard_state(
    settings: Optional[Settings] = None,
    clock: Optional[Callable[[], date]] = None,
) -> DashboardState:
    """
    Factory function to wire all dashboard components.

    Without Supabase credentials the dashboard runs in local-cache-only
    mode; this is logged once here and never surfaced as an error.
    """
    settings = settings or get_settings()
    configure_logging()

    sync_logger = SyncAuditLogger()
    local_cache = SQLiteLocalCache(settings.local_cache.path)
    remote_store = SupabaseRemoteStore(
        SupabaseClient(settings.supabase),
        connectivity_timeout=settings.sync.connectivity_timeout_seconds,
    )
    if not remote_store.is_configured():
        sync_logger.log_remote_unconfigured()

    orchestrator = SyncOrchestrator(
        local_cache=local_cache,
        remote_store=remote_store,
        sync_logger=sync_logger,
        settings=settings.sync,
    )
    return DashboardState(
        orchestrator=orchestrator,
        write_queue=KindWriteQueue(),
        sync_logger=sync_logger,
        clock=clock,
    )
