# This project was developed with assistance from AI tools.
"""Party roster: who is on the dossier and in which role.

A dossier always has exactly one primary tenant, plus at most two
co-tenants and two guarantors. New parties only get a durable id once they
are materialized (persisted with at least name, email and phone).
"""

import logging
import uuid

from intake_db.enums import PartyRole

from ..schemas.dossier import Dossier, Party
from .crm import normalize_phone
from .validation import IntakeValidationError

logger = logging.getLogger(__name__)

MATERIALIZE_REQUIRED_FIELDS = ("name", "email", "phone")


class RosterError(IntakeValidationError):
    """Raised when a roster change would break the roster's constraints."""


class MaterializeError(IntakeValidationError):
    """Raised when a party lacks the fields needed to persist it."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Fill in {', '.join(missing)} before uploading documents")


class PartyNotFoundError(LookupError):
    def __init__(self, local_id: str):
        self.local_id = local_id
        super().__init__(f"Party {local_id} not found")


def new_local_id() -> str:
    return f"new-{uuid.uuid4().hex[:12]}"


def find_party(dossier: Dossier, local_id: str) -> Party:
    party = dossier.get_party(local_id)
    if party is None:
        raise PartyNotFoundError(local_id)
    return party


def add_party(
    dossier: Dossier,
    role: PartyRole,
    *,
    name: str = "",
    phone: str = "",
    guarantees: str | None = None,
) -> Party:
    """Append a new, unsaved party to the roster.

    A guarantor without an explicit target vouches for the primary tenant.
    """
    if role == PartyRole.PRIMARY_TENANT:
        raise RosterError("A dossier has exactly one primary tenant")

    limit = PartyRole.max_per_dossier()[role]
    if len(dossier.parties_with_role(role)) >= limit:
        raise RosterError(f"At most {limit} parties with role {role.value} are allowed")

    if role == PartyRole.GUARANTOR:
        if guarantees is None:
            primary = dossier.primary_tenant
            guarantees = primary.local_id if primary is not None else None
        target = dossier.get_party(guarantees) if guarantees else None
        if target is None or target.role not in PartyRole.tenant_roles():
            raise RosterError("A guarantor must be linked to the tenant or a co-tenant")
    elif guarantees is not None:
        raise RosterError("Only guarantors can be linked to another party")

    party = Party(
        local_id=new_local_id(),
        role=role,
        name=name.strip(),
        phone=phone.strip(),
        guarantees=guarantees,
    )
    dossier.parties = [*dossier.parties, party]
    logger.info("Added %s %s to dossier %s", role.value, party.local_id, dossier.id)
    return party


def remove_party(dossier: Dossier, local_id: str) -> Party:
    """Remove a party with its slots; guarantors that pointed at it are unlinked."""
    party = find_party(dossier, local_id)
    if party.role == PartyRole.PRIMARY_TENANT:
        raise RosterError("The primary tenant cannot be removed")

    dossier.parties = [p for p in dossier.parties if p.local_id != local_id]
    for other in dossier.parties:
        if other.guarantees == local_id:
            other.guarantees = None
    logger.info("Removed %s %s from dossier %s", party.role.value, local_id, dossier.id)
    return party


async def materialize(store, dossier: Dossier, party: Party) -> int:
    """Persist a minimal record for the party and assign its durable id."""
    if party.durable_id is not None:
        return party.durable_id

    missing = [f for f in MATERIALIZE_REQUIRED_FIELDS if not str(getattr(party, f)).strip()]
    if missing:
        raise MaterializeError(missing)

    guarantees_party_id = None
    if party.guarantees:
        target = dossier.get_party(party.guarantees)
        guarantees_party_id = target.durable_id if target is not None else None

    # The party row references the dossier row
    await store.upsert_dossier(dossier)
    durable_id = await store.upsert_party(
        dossier.id, party, guarantees_party_id=guarantees_party_id
    )
    party.durable_id = durable_id
    logger.info("Materialized party %s as %s", party.local_id, durable_id)
    return durable_id


async def link_party_to_account(
    crm,
    owner_account_id: int | None,
    *,
    name: str,
    phone: str,
    role: PartyRole,
) -> int | None:
    """Find or create the party's CRM account and link it to the owner account.

    Best-effort: returns the party's account id, or None when nothing could
    be linked. Failures are logged and never raised.
    """
    name = name.strip()
    phone = phone.strip()
    if not name or not phone:
        return None
    try:
        account_id = await crm.find_by_phone(phone)
        if account_id is None:
            account_id = await crm.create(name, normalize_phone(phone))
            logger.info("Created CRM account %s for %s", account_id, role.value)
        if owner_account_id is not None and owner_account_id != account_id:
            await crm.add_link(owner_account_id, account_id=account_id, role=role.value, name=name)
        return account_id
    except Exception:
        logger.warning("CRM linking failed for %s", role.value, exc_info=True)
        return None
