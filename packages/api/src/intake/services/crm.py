# This project was developed with assistance from AI tools.
"""CRM account access.

Accounts are keyed by WhatsApp number. The primary tenant's account keeps a
list of linked accounts (co-tenants, guarantors) and a documentation status.
Callers treat every operation here as best-effort.
"""

import logging

from intake_db import Account, SessionLocal
from intake_db.enums import AccountStatus, DocumentationStatus
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


def normalize_phone(phone: str) -> str:
    return "".join(phone.split())


class CrmAccounts:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory or SessionLocal

    async def find_by_phone(self, phone: str) -> int | None:
        """Return the id of an account registered under this number (as typed or normalized)."""
        normalized = normalize_phone(phone)
        async with self._session_factory() as session:
            stmt = (
                select(Account.id)
                .where(or_(Account.whatsapp_number == normalized, Account.whatsapp_number == phone))
                .limit(1)
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def create(self, name: str, phone: str) -> int:
        async with self._session_factory() as session:
            account = Account(
                tenant_name=name,
                whatsapp_number=phone,
                status=AccountStatus.DEAL_IN_PROGRESS.value,
                documentation_status=DocumentationStatus.PENDING,
                co_tenants=[],
            )
            session.add(account)
            await session.commit()
            await session.refresh(account)
            return account.id

    async def add_link(
        self, owner_account_id: int, *, account_id: int, role: str, name: str
    ) -> bool:
        """Record a linked account on the owner unless it is already there.

        Returns True when a link was added.
        """
        async with self._session_factory() as session:
            owner = await session.get(Account, owner_account_id)
            if owner is None:
                logger.warning("CRM account %s not found, link skipped", owner_account_id)
                return False
            links = list(owner.co_tenants or [])
            if any(link.get("account_id") == account_id for link in links):
                return False
            links.append({"account_id": account_id, "role": role, "name": name})
            owner.co_tenants = links
            await session.commit()
            return True

    async def set_documentation_status(
        self, account_id: int, status: DocumentationStatus
    ) -> None:
        async with self._session_factory() as session:
            account = await session.get(Account, account_id)
            if account is None:
                logger.warning("CRM account %s not found, status not updated", account_id)
                return
            account.documentation_status = status
            await session.commit()
