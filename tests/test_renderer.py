"""
Tests for the invoice document renderer.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from io import BytesIO
from zipfile import ZipFile

import pytest
from openpyxl import load_workbook

from vet_billing.billing.renderer import (
    XLSX_MIME_TYPE,
    InvoiceRenderer,
    document_filename,
)
from vet_billing.exceptions import DataIntegrityException
from vet_billing.models import InvoiceStatus
from vet_billing.schemas import BillLine, InvoiceResponse, OwnerResponse

CREATED_AT = datetime(2024, 3, 1, 9, 30, 15, 123456, tzinfo=timezone.utc)


def _invoice(total="38.50", **overrides) -> InvoiceResponse:
    data = {
        "id": 12,
        "owner_id": 3,
        "total_amount": Decimal(total),
        "paid": False,
        "due_date": date(2024, 3, 31),
        "created_at": CREATED_AT,
        "status": InvoiceStatus.ISSUED,
    }
    data.update(overrides)
    return InvoiceResponse(**data)


def _owner(**overrides) -> OwnerResponse:
    data = {"id": 3, "name": "Tanaka", "phone": "090-1234-5678", "address": "Tokyo"}
    data.update(overrides)
    return OwnerResponse(**data)


def _lines():
    return [
        BillLine(
            examination_id=1,
            line_item_id=1,
            examination_date=date(2024, 1, 10),
            description="AmoxiClav",
            quantity=Decimal("2"),
            unit_price=Decimal("15.00"),
            line_total=Decimal("30.00"),
        ),
        BillLine(
            examination_id=1,
            line_item_id=2,
            examination_date=date(2024, 1, 10),
            description="Pain-relief",
            quantity=Decimal("1"),
            unit_price=Decimal("8.50"),
            line_total=Decimal("8.50"),
        ),
    ]


def _sheet(content: bytes):
    return load_workbook(BytesIO(content)).active


def _as_date(value):
    return value.date() if isinstance(value, datetime) else value


class TestInvoiceRenderer:
    """Test cases for InvoiceRenderer."""

    def test_header_block(self):
        """Test the banner, invoice details and owner details."""
        sheet = _sheet(InvoiceRenderer().render(_invoice(), _owner(), _lines()))

        assert sheet["A1"].value == "VETERINARY CLINIC INVOICE"
        assert "A1:D1" in [str(r) for r in sheet.merged_cells.ranges]
        assert sheet["A1"].alignment.horizontal == "center"
        assert sheet["A3"].value == "Invoice #:"
        assert sheet["B3"].value == 12
        assert sheet["A4"].value == "Date:"
        assert _as_date(sheet["B4"].value) == date(2024, 3, 1)
        assert sheet["B4"].number_format == "yyyy-mm-dd"
        assert sheet["A6"].value == "Owner Name:"
        assert sheet["B6"].value == "Tanaka"
        assert sheet["A7"].value == "Phone:"
        assert sheet["B7"].value == "090-1234-5678"

    def test_line_table_and_total(self):
        """Test header row, one row per line and the total two rows below."""
        sheet = _sheet(InvoiceRenderer().render(_invoice(), _owner(), _lines()))

        assert [cell.value for cell in sheet[9]] == [
            "Description",
            "Quantity",
            "Price",
            "Total",
        ]
        assert [cell.value for cell in sheet[10]] == ["AmoxiClav", 2, 15, 30]
        assert [cell.value for cell in sheet[11]] == ["Pain-relief", 1, 8.5, 8.5]
        assert all(cell.value is None for cell in sheet[12])
        assert sheet["C13"].value == "Total:"
        assert sheet["D13"].value == 38.5
        assert sheet["D13"].number_format == "0.00"
        assert sheet["C10"].number_format == "0.00"

    def test_zero_lines(self):
        """Test an empty invoice still renders headers and a 0.00 total."""
        sheet = _sheet(InvoiceRenderer().render(_invoice(total="0.00"), _owner(), []))

        assert sheet["A9"].value == "Description"
        assert sheet["A10"].value is None
        assert sheet["C11"].value == "Total:"
        assert sheet["D11"].value == 0

    def test_line_totals_written_unrounded(self):
        """Test fractional-cent line totals are stored as computed."""
        line = BillLine(
            examination_id=1,
            line_item_id=1,
            examination_date=date(2024, 1, 10),
            description="Drops",
            quantity=Decimal("0.5"),
            unit_price=Decimal("0.05"),
            line_total=Decimal("0.025"),
        )

        sheet = _sheet(InvoiceRenderer().render(_invoice(total="0.03"), _owner(), [line]))

        assert sheet["D10"].value == pytest.approx(0.025)
        assert sheet["D12"].value == pytest.approx(0.03)

    def test_deterministic_bytes(self):
        """Test rendering the same snapshot twice yields identical bytes."""
        renderer = InvoiceRenderer()

        first = renderer.render(_invoice(), _owner(), _lines())
        second = renderer.render(_invoice(), _owner(), _lines())

        assert first == second

    def test_decimal_scale_does_not_change_bytes(self):
        """Test amounts read back with a different scale render identically."""
        rescaled = [
            line.model_copy(update={"line_total": line.line_total.quantize(Decimal("0.0001"))})
            for line in _lines()
        ]

        renderer = InvoiceRenderer()
        assert renderer.render(_invoice(), _owner(), _lines()) == renderer.render(
            _invoice(), _owner(), rescaled
        )

    def test_naive_and_aware_timestamps_render_alike(self):
        """Test a naive UTC creation time renders like its aware equivalent."""
        naive = _invoice(created_at=CREATED_AT.replace(tzinfo=None))
        renderer = InvoiceRenderer()

        assert renderer.render(naive, _owner(), _lines()) == renderer.render(
            _invoice(), _owner(), _lines()
        )

    def test_archive_timestamps_pinned(self):
        """Test zip entries and workbook properties carry the creation time."""
        content = InvoiceRenderer().render(_invoice(), _owner(), _lines())

        with ZipFile(BytesIO(content)) as archive:
            # DOS timestamps have two-second resolution
            assert {info.date_time for info in archive.infolist()} == {
                (2024, 3, 1, 9, 30, 14)
            }

        properties = load_workbook(BytesIO(content)).properties
        assert properties.created == datetime(2024, 3, 1, 9, 30, 15)
        assert properties.modified == datetime(2024, 3, 1, 9, 30, 15)

    def test_missing_owner(self):
        """Test a missing owner is an integrity error, not an empty name."""
        with pytest.raises(DataIntegrityException) as exc_info:
            InvoiceRenderer().render(_invoice(), None, _lines())

        assert exc_info.value.details["missing_reference"] == "owner"
        assert exc_info.value.details["invoice_id"] == 12

    def test_mismatched_owner(self):
        """Test an owner other than the invoice's is rejected."""
        with pytest.raises(DataIntegrityException):
            InvoiceRenderer().render(_invoice(), _owner(id=4), _lines())

    def test_inputs_not_mutated(self):
        """Test rendering leaves the invoice and lines untouched."""
        invoice = _invoice()
        lines = _lines()
        before = (invoice.model_dump(), [line.model_dump() for line in lines])

        InvoiceRenderer().render(invoice, _owner(), lines)

        assert (invoice.model_dump(), [line.model_dump() for line in lines]) == before

    def test_build_document(self):
        """Test the document wrapper carries filename and MIME type."""
        document = InvoiceRenderer().build_document(_invoice(), _owner(), _lines())

        assert document.invoice_id == 12
        assert document.filename == "invoice-12.xlsx"
        assert document.content_type == XLSX_MIME_TYPE
        assert document.content_disposition == "attachment; filename=invoice-12.xlsx"
        assert b"".join(document.iter_chunks(100)) == document.content
        assert document.size == len(document.content)


def test_document_filename():
    """Test download filenames are derived from the invoice id."""
    assert document_filename(7) == "invoice-7.xlsx"
