"""
Pytest configuration and fixtures for vet-billing tests.

This module provides common fixtures for all tests in the vet-billing
package: a fresh SQLite database per test, a session manager bound to it,
and a factory that records owners, catalog entries and examinations.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Iterable, Optional, Tuple

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from vet_billing.database.connection import create_engine
from vet_billing.database.repository import BillingRepository
from vet_billing.database.session import SessionManager
from vet_billing.models import Disease, Medication, Owner, Pet
from vet_billing.models.base import Base
from vet_billing.schemas import ExaminationCreate, ExaminationLineItemCreate


@pytest_asyncio.fixture
async def session_manager(tmp_path) -> AsyncGenerator[SessionManager, None]:
    """
    Create a session manager over a throwaway SQLite database.

    A file database (rather than in-memory) lets every session opened by the
    code under test see the same tables.
    """
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}")
    manager = SessionManager(engine)
    await manager.initialize_database(Base.metadata)

    yield manager

    await manager.close_all_sessions()


@pytest_asyncio.fixture
async def async_session(
    session_manager: SessionManager,
) -> AsyncGenerator[AsyncSession, None]:
    """Provide a plain session; tests commit explicitly when they need to."""
    async with session_manager.get_session() as session:
        yield session


class BillingDataFactory:
    """Records test entities, each in its own committed transaction."""

    def __init__(self, session_manager: SessionManager):
        self.session_manager = session_manager

    async def _add(self, entity):
        async with self.session_manager.get_transaction() as session:
            session.add(entity)
            await session.flush()
            return entity.id

    async def create_owner(
        self, name: str = "Test Owner", phone: str = "555-0100", **kwargs
    ) -> int:
        defaults = {"address": "1 Clinic Road", "email": None}
        defaults.update(kwargs)
        return await self._add(Owner(name=name, phone=phone, **defaults))

    async def create_pet(
        self, owner_id: int, name: str = "Buddy", species: str = "dog", **kwargs
    ) -> int:
        return await self._add(Pet(owner_id=owner_id, name=name, species=species, **kwargs))

    async def create_disease(self, name: str = "Otitis") -> int:
        return await self._add(Disease(name=name))

    async def create_medication(
        self, name: str, price: str, unit: str = "tablet"
    ) -> int:
        return await self._add(Medication(name=name, price=Decimal(price), unit=unit))

    async def record_examination(
        self,
        pet_id: int,
        disease_id: int,
        examination_date: date,
        items: Iterable[Tuple[int, str]] = (),
        notes: Optional[str] = None,
    ) -> int:
        """Record an examination; ``items`` are (medication_id, quantity) pairs."""
        data = ExaminationCreate(
            pet_id=pet_id,
            disease_id=disease_id,
            examination_date=examination_date,
            notes=notes,
            medications=[
                ExaminationLineItemCreate(medication_id=medication_id, quantity=Decimal(qty))
                for medication_id, qty in items
            ],
        )
        async with self.session_manager.get_transaction() as session:
            examination = await BillingRepository(session).insert_examination(data)
            return examination.id


@pytest.fixture
def factory(session_manager: SessionManager) -> BillingDataFactory:
    """Factory bound to the per-test database."""
    return BillingDataFactory(session_manager)


@dataclass
class TanakaScenario:
    """Owner Tanaka with pet Pochi and one examination on 2024-01-10."""

    owner_id: int
    pet_id: int
    disease_id: int
    amoxiclav_id: int
    pain_relief_id: int
    examination_id: int


@pytest_asyncio.fixture
async def tanaka(factory: BillingDataFactory) -> TanakaScenario:
    """
    Owner "Tanaka", pet "Pochi", one visit with AmoxiClav 2 @ 15.00 and
    Pain-relief 1 @ 8.50 (bill total 38.50).
    """
    owner_id = await factory.create_owner(name="Tanaka", phone="090-1234-5678")
    pet_id = await factory.create_pet(owner_id, name="Pochi")
    disease_id = await factory.create_disease("Skin infection")
    # Recorded out of name order to exercise line ordering
    pain_relief_id = await factory.create_medication("Pain-relief", "8.50")
    amoxiclav_id = await factory.create_medication("AmoxiClav", "15.00")
    examination_id = await factory.record_examination(
        pet_id,
        disease_id,
        date(2024, 1, 10),
        items=[(pain_relief_id, "1"), (amoxiclav_id, "2")],
    )
    return TanakaScenario(
        owner_id=owner_id,
        pet_id=pet_id,
        disease_id=disease_id,
        amoxiclav_id=amoxiclav_id,
        pain_relief_id=pain_relief_id,
        examination_id=examination_id,
    )
