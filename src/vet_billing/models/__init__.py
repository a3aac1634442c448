"""
Database models for the vet-billing package.

This module contains SQLAlchemy models for the clinic billing graph:
owners, pets, reference data, examinations and invoices.
"""

# Base model will be imported by all other models
from .base import Base, BaseModel
from .catalog import Disease, Medication
from .examination import Examination, ExaminationMedication
from .invoice import Invoice, InvoiceExamination, InvoiceLine, InvoiceStatus
from .owner import Owner, Pet

__all__ = [
    "Base",
    "BaseModel",
    "Owner",
    "Pet",
    "Disease",
    "Medication",
    "Examination",
    "ExaminationMedication",
    "Invoice",
    "InvoiceStatus",
    "InvoiceLine",
    "InvoiceExamination",
]
