"""
Billing repository.

Read/write accessors the billing engine depends on. A repository wraps one
``AsyncSession``; the caller owns the session and its transaction (see
``SessionManager.get_transaction``). Joins across owner, pet, examination
and medication are done here on demand; models carry no back-references.
"""

import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import (
    BusinessRuleException,
    DataIntegrityException,
    InvalidStateTransitionException,
    NotFoundException,
)
from ..models import (
    Disease,
    Examination,
    ExaminationMedication,
    Invoice,
    InvoiceExamination,
    InvoiceLine,
    InvoiceStatus,
    Medication,
    Owner,
    Pet,
)
from ..schemas.common import DateRange
from ..schemas.examination import ExaminationCreate, ExaminationLineView, ExaminationRecord
from ..schemas.invoice import BillLine, InvoiceCreate, InvoiceListItem, InvoiceResponse
from ..utils.datetime_utils import get_current_utc, to_date

logger = logging.getLogger(__name__)


class BillingRepository:
    """Repository over the clinic billing tables."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # --- Owners ---

    async def find_owner(self, owner_id: int) -> Optional[Owner]:
        """Get an owner by id, or None."""
        return await self.session.get(Owner, owner_id)

    async def get_owner(self, owner_id: int) -> Owner:
        """
        Get an owner by id.

        Raises:
            NotFoundException: If the owner does not exist
        """
        owner = await self.find_owner(owner_id)
        if owner is None:
            raise NotFoundException("Owner", owner_id)
        return owner

    async def lock_owner(self, owner_id: int) -> Owner:
        """
        Get an owner and lock its row until the transaction ends.

        Serializes invoice generation per owner on stores that support row
        locks.

        Raises:
            NotFoundException: If the owner does not exist
        """
        result = await self.session.execute(
            select(Owner)
            .where(Owner.id == owner_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        owner = result.scalar_one_or_none()
        if owner is None:
            raise NotFoundException("Owner", owner_id, details={"stage": "lock"})
        return owner

    # --- Examinations ---

    async def list_examinations_for_owner(
        self,
        owner_id: int,
        date_range: Optional[DateRange] = None,
        unbilled_only: bool = False,
    ) -> List[ExaminationRecord]:
        """
        List an owner's examinations with their line items and medication names.

        Args:
            owner_id: Owner whose pets' examinations are listed
            date_range: Optional inclusive filter on the examination date
            unbilled_only: Skip examinations already linked to an invoice

        Returns:
            Examination records ordered by date then id

        Raises:
            DataIntegrityException: If an examination or line item references a
                disease or medication that does not exist
        """
        stmt = (
            select(Examination, Pet.name, Disease.id)
            .join(Pet, Examination.pet_id == Pet.id)
            .outerjoin(Disease, Examination.disease_id == Disease.id)
            .where(Pet.owner_id == owner_id)
        )
        if date_range is not None:
            if date_range.start is not None:
                stmt = stmt.where(Examination.examination_date >= date_range.start)
            if date_range.end is not None:
                stmt = stmt.where(Examination.examination_date <= date_range.end)
        if unbilled_only:
            stmt = stmt.where(
                ~exists().where(InvoiceExamination.examination_id == Examination.id)
            )
        stmt = stmt.order_by(Examination.examination_date, Examination.id)

        rows = (await self.session.execute(stmt)).all()
        if not rows:
            return []

        for examination, _, disease_id in rows:
            if disease_id is None:
                raise DataIntegrityException(
                    f"Examination {examination.id} references missing disease "
                    f"{examination.disease_id}",
                    entity="Examination",
                    entity_id=examination.id,
                    missing_reference="disease",
                    context={"owner_id": owner_id, "stage": "read"},
                )

        line_items = await self._load_line_items(
            [examination.id for examination, _, _ in rows], owner_id
        )

        return [
            ExaminationRecord(
                examination_id=examination.id,
                pet_id=examination.pet_id,
                pet_name=pet_name,
                disease_id=examination.disease_id,
                examination_date=to_date(examination.examination_date),
                line_items=line_items.get(examination.id, []),
            )
            for examination, pet_name, _ in rows
        ]

    async def _load_line_items(
        self, examination_ids: Sequence[int], owner_id: int
    ) -> Dict[int, List[ExaminationLineView]]:
        """Load line items for the given examinations, grouped by examination."""
        stmt = (
            select(ExaminationMedication, Medication.name)
            .outerjoin(Medication, ExaminationMedication.medication_id == Medication.id)
            .where(ExaminationMedication.examination_id.in_(examination_ids))
            .order_by(ExaminationMedication.id)
        )
        grouped: Dict[int, List[ExaminationLineView]] = {}
        for item, medication_name in (await self.session.execute(stmt)).all():
            if medication_name is None:
                raise DataIntegrityException(
                    f"Line item {item.id} references missing medication "
                    f"{item.medication_id}",
                    entity="ExaminationMedication",
                    entity_id=item.id,
                    missing_reference="medication",
                    context={"owner_id": owner_id, "stage": "read"},
                )
            grouped.setdefault(item.examination_id, []).append(
                ExaminationLineView(
                    line_item_id=item.id,
                    medication_id=item.medication_id,
                    medication_name=medication_name,
                    quantity=item.quantity,
                    price=item.price,
                )
            )
        return grouped

    async def insert_examination(self, data: ExaminationCreate) -> Examination:
        """
        Record an examination with its line items.

        Each line item captures the medication's current master price; later
        master price changes never touch it.

        Raises:
            NotFoundException: If the pet, disease or a medication does not exist
        """
        if await self.session.get(Pet, data.pet_id) is None:
            raise NotFoundException("Pet", data.pet_id)
        if await self.session.get(Disease, data.disease_id) is None:
            raise NotFoundException("Disease", data.disease_id)

        medication_ids = {item.medication_id for item in data.medications}
        medications: Dict[int, Medication] = {}
        if medication_ids:
            result = await self.session.execute(
                select(Medication).where(Medication.id.in_(medication_ids))
            )
            medications = {m.id: m for m in result.scalars().all()}
        missing = sorted(medication_ids - medications.keys())
        if missing:
            raise NotFoundException("Medication", missing[0])

        examination = Examination(
            pet_id=data.pet_id,
            disease_id=data.disease_id,
            examination_date=data.examination_date,
            notes=data.notes,
        )
        self.session.add(examination)
        await self.session.flush()

        for item in data.medications:
            self.session.add(
                ExaminationMedication(
                    examination_id=examination.id,
                    medication_id=item.medication_id,
                    quantity=item.quantity,
                    price=medications[item.medication_id].price,
                )
            )
        await self.session.flush()

        logger.info(
            f"Recorded examination {examination.id} for pet {data.pet_id} "
            f"with {len(data.medications)} line items"
        )
        return examination

    # --- Invoices ---

    async def insert_invoice(self, data: InvoiceCreate) -> Invoice:
        """
        Insert an invoice with its line snapshot and billed examination links.

        Must run inside the caller's transaction so that the invoice row and
        all derived rows are written together or not at all.

        Raises:
            NotFoundException: If the owner does not exist
            BusinessRuleException: If the due date precedes the issue date
        """
        if await self.find_owner(data.owner_id) is None:
            raise NotFoundException("Owner", data.owner_id, details={"stage": "persist"})

        issued_at = data.issued_at or get_current_utc()
        if data.due_date < to_date(issued_at):
            raise BusinessRuleException(
                "Invoice due date cannot precede its creation date",
                rule_name="due_date_not_before_creation",
                context={"owner_id": data.owner_id, "due_date": data.due_date.isoformat()},
            )

        invoice = Invoice(
            owner_id=data.owner_id,
            total_amount=data.total_amount,
            due_date=data.due_date,
            period_start=data.period_start,
            period_end=data.period_end,
            created_at=issued_at,
            updated_at=issued_at,
        )
        self.session.add(invoice)
        await self.session.flush()

        for position, line in enumerate(data.lines):
            self.session.add(
                InvoiceLine(
                    invoice_id=invoice.id,
                    examination_id=line.examination_id,
                    examination_medication_id=line.line_item_id,
                    position=position,
                    examination_date=line.examination_date,
                    description=line.description,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=line.line_total,
                )
            )
        for examination_id in data.examination_ids:
            self.session.add(
                InvoiceExamination(invoice_id=invoice.id, examination_id=examination_id)
            )
        await self.session.flush()

        logger.info(
            f"Inserted invoice {invoice.id} for owner {data.owner_id}: "
            f"{len(data.lines)} lines, total {data.total_amount}"
        )
        return invoice

    async def get_invoice(self, invoice_id: int, for_update: bool = False) -> Optional[Invoice]:
        """Get an invoice by id, optionally locking its row."""
        stmt = select(Invoice).where(Invoice.id == invoice_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(
            stmt.execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def update_invoice_paid_status(self, invoice_id: int, paid: bool = True) -> Invoice:
        """
        Set an invoice's paid flag under a row lock.

        Paid is terminal: marking a paid invoice paid again, or unpaid, is
        rejected and nothing is changed.

        Raises:
            NotFoundException: If the invoice does not exist
            InvalidStateTransitionException: If the invoice is already paid
        """
        invoice = await self.get_invoice(invoice_id, for_update=True)
        if invoice is None:
            raise NotFoundException("Invoice", invoice_id, details={"stage": "settle"})

        if paid:
            invoice.mark_paid()
        elif invoice.paid:
            raise InvalidStateTransitionException(
                f"Cannot reopen invoice {invoice_id}: paid invoices are final",
                invoice_id=invoice_id,
                from_state=InvoiceStatus.PAID.value,
                to_state=InvoiceStatus.ISSUED.value,
            )
        await self.session.flush()
        return invoice

    async def get_invoice_lines(self, invoice_id: int) -> List[BillLine]:
        """Get the persisted line snapshot of an invoice, in billed order."""
        result = await self.session.execute(
            select(InvoiceLine)
            .where(InvoiceLine.invoice_id == invoice_id)
            .order_by(InvoiceLine.position)
        )
        return [
            BillLine(
                examination_id=line.examination_id,
                line_item_id=line.examination_medication_id,
                examination_date=to_date(line.examination_date),
                description=line.description,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
            )
            for line in result.scalars().all()
        ]

    async def list_invoices(
        self, paid: Optional[bool] = None, owner_id: Optional[int] = None
    ) -> List[InvoiceListItem]:
        """
        List invoices with their owner's name, newest first.

        Raises:
            DataIntegrityException: If an invoice references a missing owner
        """
        stmt = select(Invoice, Owner.name).outerjoin(Owner, Invoice.owner_id == Owner.id)
        if paid is not None:
            stmt = stmt.where(Invoice.paid.is_(paid))
        if owner_id is not None:
            stmt = stmt.where(Invoice.owner_id == owner_id)
        stmt = stmt.order_by(Invoice.created_at.desc(), Invoice.id.desc())

        items: List[InvoiceListItem] = []
        for invoice, owner_name in (await self.session.execute(stmt)).all():
            if owner_name is None:
                raise DataIntegrityException(
                    f"Invoice {invoice.id} references missing owner {invoice.owner_id}",
                    entity="Invoice",
                    entity_id=invoice.id,
                    missing_reference="owner",
                    context={"invoice_id": invoice.id, "stage": "list"},
                )
            items.append(
                InvoiceListItem(
                    **InvoiceResponse.model_validate(invoice).model_dump(),
                    owner_name=owner_name,
                )
            )
        return items
