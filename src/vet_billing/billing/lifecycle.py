"""
Invoice lifecycle manager.

Orchestrates the billing engine: computes drafts, issues invoices inside a
single transaction, renders documents from the persisted snapshot and
records payments.

Lifecycle::

    DRAFT --generate--> ISSUED --mark_paid--> PAID

Invoices are append-only. Each generation bills only the owner's
examinations that no earlier invoice has billed, so an issued invoice is
never replaced and its document is stable for its whole life.
"""

import logging
from typing import List, Optional

from ..database.connection import create_engine
from ..database.repository import BillingRepository
from ..database.session import SessionManager
from ..exceptions import (
    ConfigurationException,
    DocumentRenderException,
    InvalidStateTransitionException,
    NotFoundException,
    PersistenceException,
    VetBillingException,
    log_exception_context,
)
from ..models.invoice import InvoiceStatus
from ..schemas.common import DateRange
from ..schemas.invoice import (
    BillLine,
    GeneratedInvoice,
    InvoiceCreate,
    InvoiceDashboardSummary,
    InvoiceDocument,
    InvoiceDraft,
    InvoiceListItem,
    InvoiceResponse,
)
from ..schemas.owner import OwnerResponse
from ..utils.config import BillingSettings
from ..utils.datetime_utils import (
    DEFAULT_DUE_DAYS,
    calculate_due_date,
    get_current_utc,
)
from ..utils.money import exact_sum, format_money
from .aggregator import BillingAggregator
from .renderer import InvoiceRenderer

logger = logging.getLogger(__name__)


class InvoiceLifecycleManager:
    """Issues, renders and settles invoices."""

    def __init__(
        self,
        session_manager: SessionManager,
        renderer: Optional[InvoiceRenderer] = None,
        due_days: int = DEFAULT_DUE_DAYS,
    ):
        """
        Initialize the lifecycle manager.

        Args:
            session_manager: Session manager for the billing database
            renderer: Document renderer, a default ``InvoiceRenderer`` if omitted
            due_days: Days between issue and payment due date
        """
        if due_days < 0:
            raise ValueError("Due days cannot be negative")
        self.session_manager = session_manager
        self.renderer = renderer or InvoiceRenderer()
        self.due_days = due_days

    @classmethod
    def from_settings(
        cls, settings: BillingSettings, renderer: Optional[InvoiceRenderer] = None
    ) -> "InvoiceLifecycleManager":
        """
        Build a lifecycle manager with its own engine from settings.

        Raises:
            ConfigurationException: If no database URL is configured
        """
        if not settings.database_url:
            raise ConfigurationException(
                "A database URL is required", config_key="database_url"
            )
        engine = create_engine(settings.database_url, echo=settings.echo_sql)
        return cls(SessionManager(engine), renderer=renderer, due_days=settings.due_days)

    async def preview(
        self, owner_id: int, date_range: Optional[DateRange] = None
    ) -> InvoiceDraft:
        """
        Compute a draft invoice for the owner's unbilled examinations.

        Nothing is persisted.

        Raises:
            NotFoundException: If the owner does not exist
            DataIntegrityException: If the examination graph has broken references
        """
        async with self.session_manager.get_session() as session:
            summary = await BillingAggregator(BillingRepository(session)).compute_invoice(
                owner_id, date_range=date_range, unbilled_only=True
            )
        return InvoiceDraft(
            owner_id=owner_id,
            lines=summary.lines,
            total=summary.total,
            date_range=date_range,
        )

    async def generate(
        self, owner_id: int, date_range: Optional[DateRange] = None
    ) -> GeneratedInvoice:
        """
        Issue an invoice for the owner's unbilled examinations and render it.

        The owner row is locked, the bill is computed and the invoice with its
        line snapshot and examination links is written in one transaction.
        Rendering happens after commit.

        Args:
            owner_id: Owner to bill
            date_range: Optional inclusive examination date filter

        Returns:
            The issued invoice, its lines and its document

        Raises:
            NotFoundException: If the owner does not exist
            DataIntegrityException: If the examination graph has broken references
            PersistenceException: If the transaction fails; nothing is written
            DocumentRenderException: If rendering fails; the invoice stays issued
        """
        try:
            async with self.session_manager.get_transaction() as session:
                repository = BillingRepository(session)
                owner = await repository.lock_owner(owner_id)
                summary = await BillingAggregator(repository).compute_invoice(
                    owner_id, date_range=date_range, unbilled_only=True
                )
                issued_at = get_current_utc()
                invoice = await repository.insert_invoice(
                    InvoiceCreate.from_summary(
                        summary,
                        owner_id=owner_id,
                        due_date=calculate_due_date(issued_at, self.due_days),
                        date_range=date_range,
                        issued_at=issued_at,
                    )
                )
                invoice_view = InvoiceResponse.model_validate(invoice)
                owner_view = OwnerResponse.model_validate(owner)
        except PersistenceException as e:
            e.details.update({"owner_id": owner_id, "stage": "persist"})
            log_exception_context(e, {"owner_id": owner_id, "stage": "persist"}, logger)
            raise

        logger.info(
            f"Issued invoice {invoice_view.id} for owner {owner_id}: "
            f"{len(summary.lines)} lines, total {format_money(invoice_view.total_amount)}"
        )

        document = self._build_document(invoice_view, owner_view, summary.lines)
        return GeneratedInvoice(
            invoice=invoice_view, lines=summary.lines, document=document
        )

    async def download(self, invoice_id: int) -> InvoiceDocument:
        """
        Render the document of an issued invoice from its persisted snapshot.

        Raises:
            NotFoundException: If the invoice does not exist
            DataIntegrityException: If the invoice's owner is missing
            DocumentRenderException: If rendering fails
        """
        async with self.session_manager.get_session() as session:
            repository = BillingRepository(session)
            invoice = await repository.get_invoice(invoice_id)
            if invoice is None:
                raise NotFoundException("Invoice", invoice_id)
            owner = await repository.find_owner(invoice.owner_id)
            lines = await repository.get_invoice_lines(invoice_id)
            invoice_view = InvoiceResponse.model_validate(invoice)
            owner_view = OwnerResponse.model_validate(owner) if owner else None

        return self._build_document(invoice_view, owner_view, lines)

    async def mark_paid(self, invoice_id: int) -> InvoiceResponse:
        """
        Record payment of an issued invoice.

        Raises:
            InvalidStateTransitionException: If the invoice does not exist or is
                already paid; nothing is changed
        """
        try:
            async with self.session_manager.get_transaction() as session:
                invoice = await BillingRepository(session).update_invoice_paid_status(
                    invoice_id, paid=True
                )
                invoice_view = InvoiceResponse.model_validate(invoice)
        except NotFoundException as e:
            raise InvalidStateTransitionException(
                f"Cannot mark invoice {invoice_id} paid: it does not exist",
                invoice_id=invoice_id,
                to_state=InvoiceStatus.PAID.value,
            ) from e

        logger.info(f"Invoice {invoice_id} marked paid")
        return invoice_view

    async def list_invoices(
        self, paid: Optional[bool] = None, owner_id: Optional[int] = None
    ) -> List[InvoiceListItem]:
        """List invoices with their owner names, newest first."""
        async with self.session_manager.get_session() as session:
            return await BillingRepository(session).list_invoices(
                paid=paid, owner_id=owner_id
            )

    async def summarize(self) -> InvoiceDashboardSummary:
        """Invoice counts with outstanding and collected amounts."""
        invoices = await self.list_invoices()
        paid = [invoice for invoice in invoices if invoice.paid]
        unpaid = [invoice for invoice in invoices if not invoice.paid]
        return InvoiceDashboardSummary(
            total_count=len(invoices),
            paid_count=len(paid),
            unpaid_count=len(unpaid),
            outstanding_amount=exact_sum(invoice.total_amount for invoice in unpaid),
            collected_amount=exact_sum(invoice.total_amount for invoice in paid),
        )

    def _build_document(
        self,
        invoice: InvoiceResponse,
        owner: Optional[OwnerResponse],
        lines: List[BillLine],
    ) -> InvoiceDocument:
        try:
            return self.renderer.build_document(invoice, owner, lines)
        except VetBillingException:
            raise
        except Exception as e:
            logger.error(f"Rendering invoice {invoice.id} failed: {e}")
            raise DocumentRenderException(
                f"Could not render invoice {invoice.id}; it remains issued",
                invoice_id=invoice.id,
                original_error=e,
            ) from e
