"""
Billing aggregator.

Turns an owner's examination history into an ordered list of bill lines and
a grand total. ``compute_bill_lines`` is pure; ``BillingAggregator`` adds the
repository read in front of it.

Ordering is deterministic (examination date, examination id, medication
name, line item id) so that regenerating a bill for unchanged data yields
exactly the same lines. Line totals are exact Decimal products; only the
grand total is rounded, half-up, to cents.
"""

import logging
from typing import Iterable, List, Optional

from ..database.repository import BillingRepository
from ..schemas.common import DateRange
from ..schemas.examination import ExaminationRecord
from ..schemas.invoice import BillLine, BillSummary
from ..utils.money import exact_sum, round_money

logger = logging.getLogger(__name__)


def compute_bill_lines(
    examinations: Iterable[ExaminationRecord], owner_id: Optional[int] = None
) -> BillSummary:
    """
    Flatten examinations into ordered bill lines and total them.

    Args:
        examinations: Examination records with their line items
        owner_id: Owner the bill is for, carried into the summary

    Returns:
        Bill summary; empty lines and a 0.00 total when nothing is billable
    """
    ordered = sorted(
        examinations, key=lambda e: (e.examination_date, e.examination_id)
    )

    lines: List[BillLine] = []
    for examination in ordered:
        items = sorted(
            examination.line_items,
            key=lambda item: (item.medication_name, item.line_item_id),
        )
        for item in items:
            lines.append(
                BillLine(
                    examination_id=examination.examination_id,
                    line_item_id=item.line_item_id,
                    examination_date=examination.examination_date,
                    description=item.medication_name,
                    quantity=item.quantity,
                    unit_price=item.price,
                    line_total=item.billable_amount,
                )
            )

    return BillSummary(
        owner_id=owner_id,
        lines=lines,
        total=round_money(exact_sum(line.line_total for line in lines)),
        examination_ids=[e.examination_id for e in ordered],
    )


class BillingAggregator:
    """Computes an owner's bill from the repository's examination view."""

    def __init__(self, repository: BillingRepository):
        self.repository = repository

    async def compute_invoice(
        self,
        owner_id: int,
        date_range: Optional[DateRange] = None,
        unbilled_only: bool = False,
    ) -> BillSummary:
        """
        Compute the bill for an owner.

        Args:
            owner_id: Owner to bill
            date_range: Optional inclusive examination date filter
            unbilled_only: Only include examinations not yet invoiced

        Returns:
            Ordered bill lines and their total

        Raises:
            NotFoundException: If the owner does not exist
            DataIntegrityException: If the examination graph has broken references
        """
        await self.repository.get_owner(owner_id)
        examinations = await self.repository.list_examinations_for_owner(
            owner_id, date_range=date_range, unbilled_only=unbilled_only
        )
        summary = compute_bill_lines(examinations, owner_id=owner_id)
        logger.debug(
            f"Aggregated {len(examinations)} examinations into "
            f"{len(summary.lines)} lines for owner {owner_id}, total {summary.total}"
        )
        return summary
