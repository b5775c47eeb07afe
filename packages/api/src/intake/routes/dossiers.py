# This project was developed with assistance from AI tools.
"""Dossier intake routes: bid, roster, form fields, documents and submission."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status

from ..schemas.document import NewPayload, UploadResult
from ..schemas.dossier import AddPartyRequest, BidUpdate, OpenSessionRequest, Party, PartyUpdate
from ..schemas.session import DossierView, PartyRequirements
from ..services.documents import SlotNotFoundError
from ..services.intake import (
    DossierNotFoundError,
    IntakeSession,
    SessionRegistry,
    get_session_registry,
)
from ..services.persistence import PersistenceError
from ..services.roster import PartyNotFoundError
from ..services.validation import IntakeValidationError

logger = logging.getLogger(__name__)

router = APIRouter()


def get_registry() -> SessionRegistry:
    return get_session_registry()


def get_session(
    dossier_id: int,
    registry: SessionRegistry = Depends(get_registry),
) -> IntakeSession:
    """Resolve the open session for the dossier in the path."""
    try:
        return registry.get(dossier_id)
    except DossierNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@contextmanager
def _domain_errors() -> Iterator[None]:
    """Translate service exceptions into HTTP errors."""
    try:
        yield
    except (PartyNotFoundError, SlotNotFoundError) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except IntakeValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        ) from exc


def _view(session: IntakeSession) -> DossierView:
    return DossierView(
        dossier=session.dossier,
        progress=session.progress(),
        save_state=session.save_state.value,
    )


@router.post("/{dossier_id}/session", response_model=DossierView)
async def open_session(
    dossier_id: int,
    body: OpenSessionRequest | None = None,
    registry: SessionRegistry = Depends(get_registry),
) -> DossierView:
    """Load the dossier (or start a fresh one) and record the login."""
    with _domain_errors():
        session = await registry.open(dossier_id, body)
    return _view(session)


@router.get("/{dossier_id}", response_model=DossierView)
async def get_dossier(session: IntakeSession = Depends(get_session)) -> DossierView:
    return _view(session)


@router.patch("/{dossier_id}/bid", response_model=DossierView)
async def update_bid(
    body: BidUpdate,
    session: IntakeSession = Depends(get_session),
) -> DossierView:
    session.update_bid(body)
    return _view(session)


@router.post("/{dossier_id}/parties", response_model=Party, status_code=201)
async def add_party(
    body: AddPartyRequest,
    session: IntakeSession = Depends(get_session),
) -> Party:
    with _domain_errors():
        return await session.add_party(body)


@router.patch("/{dossier_id}/parties/{local_id}", response_model=Party)
async def update_party(
    local_id: str,
    body: PartyUpdate,
    session: IntakeSession = Depends(get_session),
) -> Party:
    with _domain_errors():
        return session.update_party(local_id, body)


@router.delete("/{dossier_id}/parties/{local_id}", status_code=204)
async def remove_party(
    local_id: str,
    session: IntakeSession = Depends(get_session),
) -> None:
    with _domain_errors():
        await session.remove_party(local_id)


@router.post("/{dossier_id}/parties/{local_id}/materialize", response_model=Party)
async def materialize_party(
    local_id: str,
    session: IntakeSession = Depends(get_session),
) -> Party:
    with _domain_errors():
        return await session.materialize(local_id)


@router.post(
    "/{dossier_id}/parties/{local_id}/documents/{doc_type}",
    response_model=UploadResult,
    status_code=201,
)
async def upload_documents(
    local_id: str,
    doc_type: str,
    files: list[UploadFile] | None = File(default=None),
    carried_over: list[str] | None = Form(default=None),
    session: IntakeSession = Depends(get_session),
) -> UploadResult:
    """Attach new files (and/or keep already-stored ones) to a document slot.

    A failure partway through is reported as 502 with the files that were
    stored, so the client can carry them over on retry.
    """
    payloads = [
        NewPayload(
            filename=f.filename or "document",
            content_type=f.content_type or "",
            data=await f.read(),
        )
        for f in files or []
    ]
    with _domain_errors():
        outcome = await session.upload(local_id, doc_type, payloads, carried_over or [])
        party = session.dossier.get_party(local_id)
    return UploadResult(
        party_local_id=local_id,
        durable_id=party.durable_id if party else None,
        slot=outcome.slot,
        uploaded=outcome.uploaded,
    )


@router.delete("/{dossier_id}/parties/{local_id}/documents/{doc_type}", status_code=204)
async def remove_document(
    local_id: str,
    doc_type: str,
    index: int | None = Query(default=None, ge=0),
    session: IntakeSession = Depends(get_session),
) -> None:
    """Remove one file of a multi-file slot (``index``) or the whole slot."""
    with _domain_errors():
        await session.remove_evidence(local_id, doc_type, index)


@router.post("/{dossier_id}/submit", response_model=DossierView)
async def submit(session: IntakeSession = Depends(get_session)) -> DossierView:
    with _domain_errors():
        await session.submit()
    return _view(session)


@router.get("/{dossier_id}/requirements", response_model=list[PartyRequirements])
async def list_requirements(
    session: IntakeSession = Depends(get_session),
) -> list[PartyRequirements]:
    """Document requirements per party, in display order."""
    return [
        PartyRequirements(local_id=p.local_id, requirements=session.requirements(p.local_id))
        for p in session.dossier.parties
    ]
