"""
Invoice document renderer.

Serializes an invoice, its owner and its bill lines into a single-sheet XLSX
workbook with a fixed cell layout:

    A1:D1   VETERINARY CLINIC INVOICE (merged, centered)
    A3/B3   Invoice #: <id>
    A4/B4   Date: <creation date>
    A6/B6   Owner Name: <name>
    A7/B7   Phone: <phone>
    row 9   Description | Quantity | Price | Total
    row 10+ one row per bill line, in the order received
    n+1     (blank)
    n+2     C: "Total:"  D: <invoice total>

Workbook metadata and zip entry timestamps are pinned to the invoice
creation time, so the same invoice snapshot always renders to the same bytes.
"""

import logging
from datetime import datetime
from decimal import Decimal
from io import BytesIO
from typing import Optional, Sequence
from zipfile import ZIP_DEFLATED, ZipFile, ZipInfo

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from openpyxl.worksheet.worksheet import Worksheet
from openpyxl.writer.excel import ExcelWriter

from ..exceptions import DataIntegrityException
from ..schemas.invoice import BillLine, InvoiceDocument, InvoiceResponse
from ..schemas.owner import OwnerResponse
from ..utils.datetime_utils import to_date, to_naive_utc

logger = logging.getLogger(__name__)

XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLSX_EXTENSION = "xlsx"

SHEET_TITLE = "Invoice"
BANNER = "VETERINARY CLINIC INVOICE"
HEADER = ("Description", "Quantity", "Price", "Total")
HEADER_ROW = 9
AMOUNT_FORMAT = "0.00"
DATE_FORMAT = "yyyy-mm-dd"


def _cell_number(amount: Decimal) -> float:
    # Sheet cells hold doubles; equal amounts of different scale must serialize alike
    return float(amount)


def document_filename(invoice_id: int) -> str:
    """Download filename for an invoice document."""
    return f"invoice-{invoice_id}.{XLSX_EXTENSION}"


class InvoiceRenderer:
    """Renders invoices to XLSX bytes."""

    def __init__(self, creator: str = "vet-billing"):
        self.creator = creator

    def render(
        self,
        invoice: InvoiceResponse,
        owner: Optional[OwnerResponse],
        lines: Sequence[BillLine],
    ) -> bytes:
        """
        Render an invoice workbook.

        Args:
            invoice: Issued invoice
            owner: The invoice's owner
            lines: Bill lines, already in billing order

        Returns:
            XLSX file content

        Raises:
            DataIntegrityException: If the owner is missing or does not match
        """
        if owner is None:
            raise DataIntegrityException(
                f"Invoice {invoice.id} has no resolvable owner",
                entity="Invoice",
                entity_id=invoice.id,
                missing_reference="owner",
                context={"invoice_id": invoice.id, "stage": "render"},
            )
        if owner.id != invoice.owner_id:
            raise DataIntegrityException(
                f"Invoice {invoice.id} belongs to owner {invoice.owner_id}, "
                f"not {owner.id}",
                entity="Invoice",
                entity_id=invoice.id,
                context={"invoice_id": invoice.id, "stage": "render"},
            )

        stamp = to_naive_utc(invoice.created_at).replace(microsecond=0)

        workbook = Workbook()
        workbook.properties.creator = self.creator
        workbook.properties.created = stamp
        workbook.properties.modified = stamp

        sheet = workbook.active
        sheet.title = SHEET_TITLE
        self._write_banner(sheet)
        self._write_details(sheet, invoice, owner)
        self._write_lines(sheet, invoice, lines)

        content = self._serialize(workbook, stamp)
        logger.debug(
            f"Rendered invoice {invoice.id} with {len(lines)} lines ({len(content)} bytes)"
        )
        return content

    def build_document(
        self,
        invoice: InvoiceResponse,
        owner: Optional[OwnerResponse],
        lines: Sequence[BillLine],
    ) -> InvoiceDocument:
        """Render an invoice and wrap it with its download metadata."""
        return InvoiceDocument(
            invoice_id=invoice.id,
            filename=document_filename(invoice.id),
            content_type=XLSX_MIME_TYPE,
            content=self.render(invoice, owner, lines),
        )

    @staticmethod
    def _write_banner(sheet: Worksheet) -> None:
        sheet.merge_cells("A1:D1")
        banner = sheet["A1"]
        banner.value = BANNER
        banner.font = Font(bold=True, size=14)
        banner.alignment = Alignment(horizontal="center")

    @staticmethod
    def _write_details(
        sheet: Worksheet, invoice: InvoiceResponse, owner: OwnerResponse
    ) -> None:
        sheet["A3"] = "Invoice #:"
        sheet["B3"] = invoice.id
        sheet["A4"] = "Date:"
        sheet["B4"] = to_date(invoice.created_at)
        sheet["B4"].number_format = DATE_FORMAT

        sheet["A6"] = "Owner Name:"
        sheet["B6"] = owner.name
        sheet["A7"] = "Phone:"
        sheet["B7"] = owner.phone

    @staticmethod
    def _write_lines(
        sheet: Worksheet, invoice: InvoiceResponse, lines: Sequence[BillLine]
    ) -> None:
        for column, title in enumerate(HEADER, start=1):
            cell = sheet.cell(row=HEADER_ROW, column=column, value=title)
            cell.font = Font(bold=True)

        row = HEADER_ROW + 1
        for line in lines:
            sheet.cell(row=row, column=1, value=line.description)
            for column, amount in (
                (2, line.quantity),
                (3, line.unit_price),
                (4, line.line_total),
            ):
                cell = sheet.cell(row=row, column=column, value=_cell_number(amount))
                cell.number_format = AMOUNT_FORMAT
            row += 1

        total_row = row + 1
        sheet.cell(row=total_row, column=3, value="Total:").font = Font(bold=True)
        total = sheet.cell(row=total_row, column=4, value=_cell_number(invoice.total_amount))
        total.number_format = AMOUNT_FORMAT
        total.font = Font(bold=True)

        sheet.column_dimensions["A"].width = 32
        for letter in ("B", "C", "D"):
            sheet.column_dimensions[letter].width = 14

    @staticmethod
    def _serialize(workbook: Workbook, stamp: datetime) -> bytes:
        """Write the workbook and rewrite the archive with pinned timestamps."""
        raw = BytesIO()
        # ExcelWriter.save closes the archive; openpyxl's save() would also
        # overwrite the modified timestamp with the current time
        ExcelWriter(workbook, ZipFile(raw, "w", ZIP_DEFLATED, allowZip64=True)).save()

        pinned = BytesIO()
        date_time = stamp.timetuple()[:6]
        with ZipFile(BytesIO(raw.getvalue())) as source, ZipFile(
            pinned, "w", ZIP_DEFLATED
        ) as target:
            for info in source.infolist():
                entry = ZipInfo(info.filename, date_time=date_time)
                entry.compress_type = ZIP_DEFLATED
                entry.external_attr = info.external_attr
                target.writestr(entry, source.read(info.filename))
        return pinned.getvalue()
