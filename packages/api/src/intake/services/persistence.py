# This project was developed with assistance from AI tools.
"""Dossier persistence: debounced auto-save, save status, and loading.

Save status moves Idle -> Saving -> Saved | Error and falls back to Idle a
short while after Saved/Error was shown. Edits schedule a save after a quiet
period; an edit during the quiet period restarts it. A failed save is not
retried on its own -- the next edit's save is the retry.
"""

import asyncio
import enum
import logging

from intake_db.enums import PartyRole

from ..core.config import settings
from ..schemas.dossier import Dossier, Party, PropertyConditions, PropertyReference
from ..schemas.snapshot import StoredDossier, StoredParty
from .notifications import notify_party_saved
from .reconciliation import group_documents
from .roster import new_local_id
from .scheduler import Debouncer, LoopScheduler, Scheduler, TimerHandle

logger = logging.getLogger(__name__)

_MONTHS_ADVANCE_VALUES = {0, 1, 2, 3, 6, 12}


class SaveState(str, enum.Enum):
    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


class PersistenceError(Exception):
    """Raised when a dossier cannot be loaded from the store."""


# ---------------------------------------------------------------------------
# Load / hydrate
# ---------------------------------------------------------------------------


def default_dossier(dossier_id: int, listing: PropertyReference | None = None) -> Dossier:
    """A fresh dossier with a single, empty primary tenant."""
    return Dossier(
        id=dossier_id,
        listing=listing or PropertyReference(),
        parties=[Party(local_id=new_local_id(), role=PartyRole.PRIMARY_TENANT)],
    )


def _hydrate_party(row: StoredParty) -> Party:
    return Party(
        local_id=f"p{row.id}",
        durable_id=row.id,
        role=row.role,
        name=f"{row.first_name or ''} {row.last_name or ''}".strip(),
        email=row.email or "",
        phone=row.phone or "",
        address=row.address or "",
        postcode=row.postcode or "",
        city=row.city or "",
        employment_status=row.employment_status,
        income=row.gross_monthly_income,
        account_id=row.account_id,
        guarantees=f"p{row.guarantees_party_id}" if row.guarantees_party_id else None,
        slots=group_documents(row.documents),
    )


def hydrate_dossier(
    snapshot: StoredDossier,
    listing: PropertyReference | None = None,
) -> Dossier:
    """Rebuild the in-memory dossier from a persisted snapshot."""
    if listing is None:
        listing = PropertyReference(
            address=snapshot.property_address or "",
            conditions=PropertyConditions.model_validate(snapshot.property_conditions or {}),
        )
    parties = [_hydrate_party(row) for row in snapshot.parties]
    if not any(p.role == PartyRole.PRIMARY_TENANT for p in parties):
        parties.insert(0, Party(local_id=new_local_id(), role=PartyRole.PRIMARY_TENANT))

    months_advance = snapshot.months_advance
    if months_advance not in _MONTHS_ADVANCE_VALUES:
        logger.warning(
            "Dossier %s has unsupported months_advance=%s, reset to 0",
            snapshot.id,
            months_advance,
        )
        months_advance = 0

    return Dossier(
        id=snapshot.id,
        bid_amount=snapshot.bid_amount or 0,
        start_date=snapshot.start_date,
        motivation=snapshot.motivation or "",
        months_advance=months_advance,
        listing=listing,
        parties=parties,
        is_complete=snapshot.is_complete,
        account_id=snapshot.account_id,
    )


async def load_dossier(
    store,
    dossier_id: int,
    listing: PropertyReference | None = None,
) -> Dossier:
    """Hydrate the persisted dossier, or synthesize a default one if none exists.

    Loading never writes, so calling it twice yields the same dossier.
    """
    try:
        snapshot = await store.load_snapshot(dossier_id)
    except Exception as exc:
        logger.error("Failed to load dossier %s", dossier_id, exc_info=True)
        raise PersistenceError(f"Could not load dossier {dossier_id}") from exc
    if snapshot is None:
        logger.info("No saved data for dossier %s, starting fresh", dossier_id)
        return default_dossier(dossier_id, listing)
    return hydrate_dossier(snapshot, listing)


# ---------------------------------------------------------------------------
# Save
# ---------------------------------------------------------------------------


async def save_dossier(store, dossier: Dossier, removed_party_ids: list[int]) -> None:
    """Write dossier fields, then each party in roster order.

    Parties without a durable id are inserted and get the new id back-filled.
    A guarantor's link is stored by the durable id of the guaranteed party.
    A party removed from the roster while this save runs is not back-filled;
    a row inserted for it is queued in ``removed_party_ids`` instead.
    """
    await store.upsert_dossier(dossier)

    for party_id in list(removed_party_ids):
        await store.delete_party(party_id)
        removed_party_ids.remove(party_id)

    for party in list(dossier.parties):
        if not _on_roster(dossier, party):
            continue
        guarantees_party_id = None
        if party.guarantees:
            target = dossier.get_party(party.guarantees)
            guarantees_party_id = target.durable_id if target is not None else None
        durable_id = await store.upsert_party(
            dossier.id, party, guarantees_party_id=guarantees_party_id
        )
        if not _on_roster(dossier, party):
            if party.durable_id is None:
                removed_party_ids.append(durable_id)
            continue
        if party.durable_id is None:
            party.durable_id = durable_id


def _on_roster(dossier: Dossier, party: Party) -> bool:
    return any(p is party for p in dossier.parties)


class PersistenceCoordinator:
    """Owns auto-save for one dossier."""

    def __init__(
        self,
        store,
        dispatcher,
        *,
        scheduler: Scheduler | None = None,
        quiet_period: float | None = None,
        reset_after: float | None = None,
    ):
        self._store = store
        self._dispatcher = dispatcher
        self._scheduler = scheduler or LoopScheduler()
        self._reset_after = (
            settings.SAVE_STATUS_RESET_SECONDS if reset_after is None else reset_after
        )
        self._debouncer = Debouncer(
            self._scheduler,
            settings.AUTOSAVE_DEBOUNCE_SECONDS if quiet_period is None else quiet_period,
            self._on_quiet_period,
        )
        self._reset_handle: TimerHandle | None = None
        self._state = SaveState.IDLE
        self._dossier: Dossier | None = None
        self._removed_party_ids: list[int] = []
        self._closed = False
        # Serializes store writes so two saves never insert the same party twice
        self.write_lock = asyncio.Lock()
        self._save_tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> SaveState:
        return self._state

    @property
    def save_pending(self) -> bool:
        return self._debouncer.pending

    def attach(self, dossier: Dossier) -> None:
        self._dossier = dossier

    def mark_dirty(self) -> None:
        """Schedule (or re-schedule) a save after the quiet period."""
        if self._closed or self._dossier is None:
            return
        self._debouncer.trigger()

    def forget_party(self, durable_id: int) -> None:
        """Delete a removed party's row with the next save."""
        self._removed_party_ids.append(durable_id)

    def mark_saving(self) -> None:
        self._cancel_reset()
        self._state = SaveState.SAVING

    def mark_saved(self) -> None:
        self._show(SaveState.SAVED)

    def mark_error(self) -> None:
        self._show(SaveState.ERROR)

    def _on_quiet_period(self) -> None:
        task = asyncio.get_running_loop().create_task(self.save_now(), name="dossier-autosave")
        self._save_tasks.add(task)
        task.add_done_callback(self._save_tasks.discard)

    async def save_now(self) -> bool:
        """Persist the dossier immediately. Returns False on failure."""
        dossier = self._dossier
        if dossier is None:
            return False
        self.mark_saving()
        try:
            async with self.write_lock:
                await save_dossier(self._store, dossier, self._removed_party_ids)
        except Exception:
            logger.warning("Auto-save of dossier %s failed", dossier.id, exc_info=True)
            self.mark_error()
            return False

        self.mark_saved()
        for party in dossier.parties:
            notify_party_saved(self._dispatcher, party)
        return True

    async def flush(self) -> bool:
        """Cancel the pending timer and save right away."""
        self._debouncer.cancel()
        return await self.save_now()

    async def wait_idle(self) -> None:
        """Wait for saves started by the debounce timer."""
        if self._save_tasks:
            await asyncio.gather(*list(self._save_tasks), return_exceptions=True)

    def close(self) -> None:
        """Cancel a pending save; a save already running is left to finish."""
        self._closed = True
        self._debouncer.cancel()
        self._cancel_reset()

    def _show(self, state: SaveState) -> None:
        self._cancel_reset()
        self._state = state
        if self._closed:
            return
        self._reset_handle = self._scheduler.call_later(self._reset_after, self._reset)

    def _reset(self) -> None:
        self._reset_handle = None
        self._state = SaveState.IDLE

    def _cancel_reset(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None
