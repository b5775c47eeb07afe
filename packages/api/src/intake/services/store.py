# This project was developed with assistance from AI tools.
"""Relational persistence for dossiers, parties and document metadata.

Each operation runs in its own session from the injected session factory
and commits before returning. There is no versioning: the last write wins.
"""

import logging

from intake_db import Document, Dossier as DossierRow, Party as PartyRow, SessionLocal
from intake_db.enums import DocumentStatus
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ..schemas.dossier import Dossier, Party
from ..schemas.snapshot import StoredDocument, StoredDossier

logger = logging.getLogger(__name__)


def split_name(full_name: str) -> tuple[str, str]:
    """Split "First Last Names" into first name and the remainder."""
    parts = full_name.strip().split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def _apply_party_fields(row: PartyRow, party: Party, guarantees_party_id: int | None) -> None:
    first_name, last_name = split_name(party.name)
    row.role = party.role
    row.first_name = first_name
    row.last_name = last_name
    row.email = party.email or None
    row.phone = party.phone or None
    row.address = party.address or None
    row.postcode = party.postcode or None
    row.city = party.city or None
    row.employment_status = party.employment_status
    row.gross_monthly_income = party.income
    row.account_id = party.account_id
    row.guarantees_party_id = guarantees_party_id


class DossierStore:
    """Upsert/select access to the dossier tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory or SessionLocal

    async def load_snapshot(self, dossier_id: int) -> StoredDossier | None:
        """Return the persisted dossier with parties and documents, or None."""
        async with self._session_factory() as session:
            stmt = (
                select(DossierRow)
                .options(selectinload(DossierRow.parties).selectinload(PartyRow.documents))
                .where(DossierRow.id == dossier_id)
            )
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            if row is None:
                return None
            return StoredDossier.model_validate(row)

    async def upsert_dossier(self, dossier: Dossier) -> None:
        async with self._session_factory() as session:
            row = await session.get(DossierRow, dossier.id)
            if row is None:
                row = DossierRow(id=dossier.id)
                session.add(row)
            row.bid_amount = dossier.bid_amount
            row.start_date = dossier.start_date
            row.motivation = dossier.motivation
            row.months_advance = dossier.months_advance
            row.property_address = dossier.listing.address
            row.property_conditions = dossier.listing.conditions.model_dump()
            row.is_complete = dossier.is_complete
            row.account_id = dossier.account_id
            await session.commit()

    async def upsert_party(
        self,
        dossier_id: int,
        party: Party,
        *,
        guarantees_party_id: int | None = None,
    ) -> int:
        """Update the party row keyed by durable id, or insert one.

        Returns the durable id (new for inserts). A durable id whose row has
        disappeared is treated as an insert.
        """
        async with self._session_factory() as session:
            row = None
            if party.durable_id is not None:
                row = await session.get(PartyRow, party.durable_id)
            if row is None:
                row = PartyRow(dossier_id=dossier_id)
                session.add(row)
            _apply_party_fields(row, party, guarantees_party_id)
            await session.flush()  # Assign row.id
            party_id = row.id
            await session.commit()
            return party_id

    async def delete_party(self, party_id: int) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(PartyRow).where(PartyRow.id == party_id))
            await session.commit()

    async def insert_document_metadata(
        self,
        party_id: int,
        *,
        doc_type: str,
        filename: str,
        storage_path: str,
        phone_number: str | None = None,
    ) -> StoredDocument:
        async with self._session_factory() as session:
            doc = Document(
                party_id=party_id,
                phone_number=phone_number,
                doc_type=doc_type,
                filename=filename,
                storage_path=storage_path,
                status=DocumentStatus.RECEIVED,
            )
            session.add(doc)
            await session.commit()
            await session.refresh(doc)
            return StoredDocument.model_validate(doc)

    async def delete_document_metadata(self, document_id: int) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(Document).where(Document.id == document_id))
            await session.commit()
