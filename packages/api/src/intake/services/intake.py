# This project was developed with assistance from AI tools.
"""Intake session: the single entry point for mutating one dossier.

The in-memory dossier held by a session is the source of truth while the
applicant works on it. Every mutation goes through a method here, which keeps
progress reports, auto-save, CRM bookkeeping and notifications in step.
"""

import logging
from collections.abc import Sequence

from intake_db.enums import DocumentationStatus

from ..schemas.document import (
    DocumentRequirement,
    EvidenceRecord,
    MultiSlot,
    NewPayload,
    SingleSlot,
)
from ..schemas.dossier import (
    AddPartyRequest,
    BidUpdate,
    Dossier,
    OpenSessionRequest,
    Party,
    PartyUpdate,
    PropertyReference,
)
from ..schemas.progress import DossierProgress, PartyProgress
from .crm import CrmAccounts
from .documents import attach_documents, check_batch, discard_evidence, remove_evidence
from .notifications import notify_login, notify_submitted
from .persistence import PersistenceCoordinator, PersistenceError, SaveState, load_dossier
from .progress import all_documents_complete, party_progress, summarize
from .reconciliation import ReconcileOutcome, UploadFailedError
from .requirements import resolve
from .roster import add_party, find_party, link_party_to_account, materialize, remove_party
from .scheduler import Scheduler
from .store import DossierStore
from .validation import (
    IntakeValidationError,
    UploadValidationError,
    validate_field,
    validate_phone,
)

logger = logging.getLogger(__name__)

_CLEARABLE_PARTY_FIELDS = {"employment_status", "income"}


class SubmissionError(IntakeValidationError):
    """Raised when the dossier is not ready to be submitted."""


class DossierNotFoundError(LookupError):
    def __init__(self, dossier_id: int):
        self.dossier_id = dossier_id
        super().__init__(f"Dossier {dossier_id} has no open session")


class IntakeSession:
    def __init__(
        self,
        dossier: Dossier,
        *,
        store,
        crm,
        storage,
        dispatcher,
        persistence: PersistenceCoordinator,
    ):
        self.dossier = dossier
        self._store = store
        self._crm = crm
        self._storage = storage
        self._dispatcher = dispatcher
        self._persistence = persistence
        self._persistence.attach(dossier)
        # Progress per party local id; parties nobody has touched yet are absent
        self.reports: dict[str, PartyProgress] = {}
        # Files stored by a failed batch, keyed by (local id, doc type), for carry-over on retry
        self._unattached: dict[tuple[str, str], list[EvidenceRecord]] = {}

    @classmethod
    async def open(
        cls,
        dossier_id: int,
        *,
        store,
        crm,
        storage,
        dispatcher,
        phone_number: str | None = None,
        listing: PropertyReference | None = None,
        scheduler: Scheduler | None = None,
    ) -> "IntakeSession":
        """Load (or start) a dossier and announce the login."""
        dossier = await load_dossier(store, dossier_id, listing)
        persistence = PersistenceCoordinator(store, dispatcher, scheduler=scheduler)
        session = cls(
            dossier,
            store=store,
            crm=crm,
            storage=storage,
            dispatcher=dispatcher,
            persistence=persistence,
        )
        for party in dossier.parties:
            if party.is_materialized:
                session.report(party.local_id)
        if phone_number:
            await session._bind_login(phone_number)
        notify_login(dispatcher, phone_number, dossier_id)
        return session

    async def _bind_login(self, phone_number: str) -> None:
        """Prefill the primary tenant's phone and find the CRM account behind it."""
        primary = self.dossier.primary_tenant
        ok, _msg, normalized = validate_phone(phone_number)
        if primary is not None and ok and normalized and not primary.phone:
            primary.phone = normalized
        if self.dossier.account_id is not None:
            return
        try:
            account_id = await self._crm.find_by_phone(phone_number)
        except Exception:
            logger.warning("CRM lookup failed for dossier %s", self.dossier.id, exc_info=True)
            return
        if account_id is not None:
            self.dossier.account_id = account_id
            if primary is not None and primary.account_id is None:
                primary.account_id = account_id

    # -- read side --

    @property
    def save_state(self) -> SaveState:
        return self._persistence.state

    @property
    def persistence(self) -> PersistenceCoordinator:
        return self._persistence

    def progress(self) -> DossierProgress:
        return summarize(self.dossier, self.reports)

    def report(self, local_id: str) -> PartyProgress:
        """Recompute and record the progress of one party."""
        progress = party_progress(find_party(self.dossier, local_id))
        self.reports[local_id] = progress
        return progress

    def requirements(self, local_id: str) -> list[DocumentRequirement]:
        party = find_party(self.dossier, local_id)
        return resolve(party.employment_status, party.role)

    # -- bid and form fields --

    def update_bid(self, update: BidUpdate) -> Dossier:
        changes = update.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if value is None and field != "start_date":
                continue
            setattr(self.dossier, field, value)
        if changes:
            self._persistence.mark_dirty()
        return self.dossier

    def update_party(self, local_id: str, update: PartyUpdate) -> Party:
        """Apply form edits; any invalid field rejects the whole update."""
        party = find_party(self.dossier, local_id)
        normalized: dict[str, object] = {}
        errors: list[str] = []
        for field, value in update.model_dump(exclude_unset=True).items():
            if value is None and field not in _CLEARABLE_PARTY_FIELDS:
                continue
            ok, message, cleaned = validate_field(field, value)
            if not ok:
                errors.append(f"{field}: {message}")
            else:
                normalized[field] = cleaned
        if errors:
            raise IntakeValidationError("; ".join(errors))

        for field, value in normalized.items():
            setattr(party, field, value)
        self.report(local_id)
        self._persistence.mark_dirty()
        return party

    # -- roster --

    async def add_party(self, request: AddPartyRequest) -> Party:
        party = add_party(
            self.dossier,
            request.role,
            name=request.name,
            phone=request.phone,
            guarantees=request.guarantees,
        )
        account_id = await link_party_to_account(
            self._crm,
            self.dossier.account_id,
            name=party.name,
            phone=party.phone,
            role=party.role,
        )
        if account_id is not None:
            party.account_id = account_id
        self._persistence.mark_dirty()
        return party

    async def remove_party(self, local_id: str) -> Party:
        """Drop a party from the roster along with every file stored for it."""
        party = remove_party(self.dossier, local_id)
        self.reports.pop(local_id, None)
        records = [r for slot in party.slots for r in slot.files]
        for key in [k for k in self._unattached if k[0] == local_id]:
            records.extend(self._unattached.pop(key))
        if party.durable_id is not None:
            self._persistence.forget_party(party.durable_id)
        self._persistence.mark_dirty()
        await discard_evidence(records, store=self._store, storage=self._storage)
        return party

    async def materialize(self, local_id: str) -> Party:
        party = find_party(self.dossier, local_id)
        async with self._persistence.write_lock:
            await materialize(self._store, self.dossier, party)
        self.report(local_id)
        return party

    # -- documents --

    def _resolve_carried_over(
        self, party: Party, doc_type: str, evidence_ids: Sequence[str]
    ) -> list[EvidenceRecord]:
        known: dict[str, EvidenceRecord] = {}
        slot = party.get_slot(doc_type)
        pending = self._unattached.get((party.local_id, doc_type), [])
        for record in [*(slot.files if slot else []), *pending]:
            known[str(record.id)] = record
        missing = [i for i in evidence_ids if str(i) not in known]
        if missing:
            raise UploadValidationError(
                f"Unknown file(s) for {doc_type}: {', '.join(map(str, missing))}"
            )
        return [known[str(i)] for i in evidence_ids]

    async def upload(
        self,
        local_id: str,
        doc_type: str,
        payloads: Sequence[NewPayload],
        carried_over_ids: Sequence[str] = (),
    ) -> ReconcileOutcome:
        """Attach a batch to one slot, materializing the party first if needed."""
        party = find_party(self.dossier, local_id)
        carried_over = self._resolve_carried_over(party, doc_type, carried_over_ids)
        requirement = check_batch(self.dossier, party, doc_type, payloads, carried_over)
        if party.durable_id is None:
            await self.materialize(local_id)

        key = (local_id, doc_type)
        pending = self._unattached.get(key, [])
        try:
            outcome = await attach_documents(
                self.dossier,
                party,
                doc_type,
                [*carried_over, *payloads],
                store=self._store,
                storage=self._storage,
                dispatcher=self._dispatcher,
                requirement=requirement,
                reserved_paths={r.storage_path for r in pending},
            )
        except UploadFailedError as exc:
            previous = [r for r in pending if r not in carried_over]
            self._unattached[key] = [*previous, *carried_over, *exc.uploaded]
            raise
        # Files of a failed batch that the retry did not carry over
        stale = [r for r in self._unattached.pop(key, []) if r not in carried_over]
        await discard_evidence(stale, store=self._store, storage=self._storage)
        self.report(local_id)
        await self._sync_documentation_status()
        return outcome

    async def remove_evidence(
        self, local_id: str, doc_type: str, index: int | None = None
    ) -> SingleSlot | MultiSlot | None:
        party = find_party(self.dossier, local_id)
        remaining = await remove_evidence(
            party, doc_type, index, store=self._store, storage=self._storage
        )
        self.report(local_id)
        await self._sync_documentation_status()
        return remaining

    async def _sync_documentation_status(self, status: DocumentationStatus | None = None) -> None:
        """Best-effort update of the primary tenant's CRM documentation status."""
        if self.dossier.account_id is None:
            return
        if status is None:
            status = (
                DocumentationStatus.COMPLETE
                if all_documents_complete(self.reports)
                else DocumentationStatus.PENDING
            )
        try:
            await self._crm.set_documentation_status(self.dossier.account_id, status)
        except Exception:
            logger.warning(
                "Could not update documentation status for dossier %s",
                self.dossier.id,
                exc_info=True,
            )

    # -- submission --

    async def submit(self) -> Dossier:
        if not self.dossier.has_bid:
            raise SubmissionError("Enter a bid amount and start date before submitting")

        self.dossier.is_complete = all(
            party_progress(p).is_docs_complete for p in self.dossier.parties
        )
        if not await self._persistence.flush():
            raise PersistenceError(f"Dossier {self.dossier.id} could not be saved")

        await self._sync_documentation_status(DocumentationStatus.COMPLETE)
        notify_submitted(self._dispatcher, self.dossier)
        logger.info(
            "Dossier %s submitted (complete=%s)", self.dossier.id, self.dossier.is_complete
        )
        return self.dossier

    def close(self) -> None:
        self._persistence.close()


class SessionRegistry:
    """Open intake sessions, one per dossier id."""

    def __init__(
        self,
        *,
        store,
        crm,
        storage,
        dispatcher,
        scheduler: Scheduler | None = None,
    ):
        self._store = store
        self._crm = crm
        self._storage = storage
        self._dispatcher = dispatcher
        self._scheduler = scheduler
        self._sessions: dict[int, IntakeSession] = {}

    async def open(
        self, dossier_id: int, request: OpenSessionRequest | None = None
    ) -> IntakeSession:
        """Open a session, or reuse the one already open for this dossier."""
        request = request or OpenSessionRequest()
        session = self._sessions.get(dossier_id)
        if session is not None:
            notify_login(self._dispatcher, request.phone_number, dossier_id)
            return session
        session = await IntakeSession.open(
            dossier_id,
            store=self._store,
            crm=self._crm,
            storage=self._storage,
            dispatcher=self._dispatcher,
            phone_number=request.phone_number,
            listing=request.listing,
            scheduler=self._scheduler,
        )
        self._sessions[dossier_id] = session
        return session

    def get(self, dossier_id: int) -> IntakeSession:
        session = self._sessions.get(dossier_id)
        if session is None:
            raise DossierNotFoundError(dossier_id)
        return session

    async def close_all(self) -> None:
        """Save pending edits and close every session (app shutdown)."""
        for dossier_id, session in list(self._sessions.items()):
            if session.persistence.save_pending:
                await session.persistence.flush()
            session.close()
            await session.persistence.wait_idle()
            del self._sessions[dossier_id]


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_registry: SessionRegistry | None = None


def init_session_registry(storage, dispatcher) -> SessionRegistry:
    """Initialise the singleton (called once from app lifespan)."""
    global _registry  # noqa: PLW0603
    _registry = SessionRegistry(
        store=DossierStore(),
        crm=CrmAccounts(),
        storage=storage,
        dispatcher=dispatcher,
    )
    return _registry


def get_session_registry() -> SessionRegistry:
    if _registry is None:
        raise RuntimeError("SessionRegistry not initialised -- call init_session_registry() first")
    return _registry
