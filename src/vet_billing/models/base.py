"""
Declarative base for the billing tables.

Every table gets an integer autoincrement ``id`` (invoice numbers are shown
to clients, so they stay short) and UTC ``created_at``/``updated_at``
columns. ``Invoice.created_at`` doubles as the document timestamp, so the
application sets it explicitly rather than relying on the server default.

Example:
    >>> from sqlalchemy import String
    >>> from sqlalchemy.orm import Mapped, mapped_column
    >>> class Clinic(BaseModel):
    ...     __tablename__ = "clinics"
    ...     name: Mapped[str] = mapped_column(String(200))
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

from ..utils.datetime_utils import get_current_utc


class Base(DeclarativeBase):
    """Holds the metadata passed to ``SessionManager.initialize_database``."""


class BaseModel(Base):
    """
    Abstract parent of every billing table.

    Attributes:
        id (int): Primary key, autoincrement
        created_at (datetime): When the row was written (UTC)
        updated_at (datetime): When the row last changed (UTC)
    """

    __abstract__ = True

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=get_current_utc,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=get_current_utc,
        server_default=func.now(),
        onupdate=get_current_utc,
    )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id})>"
