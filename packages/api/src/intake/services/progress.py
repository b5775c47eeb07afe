# This project was developed with assistance from AI tools.
"""Completion scoring for parties and the dossier.

Weights are fixed business policy: a party's overall score is 60% form and
40% required documents; the dossier score is 30 points for a complete bid
plus up to 70 points for the average party score.
"""

import math
from collections.abc import Mapping

from intake_db.enums import DocumentStatus

from ..schemas.dossier import Dossier, Party
from ..schemas.progress import DossierProgress, PartyProgress
from .requirements import resolve

FORM_WEIGHT = 0.6
DOC_WEIGHT = 0.4
BID_POINTS = 30
PARTY_POINTS = 70


def round_half_up(value: float) -> int:
    """Round .5 upwards, like the score display always has."""
    return int(math.floor(value + 0.5))


def _form_fields_filled(party: Party) -> list[bool]:
    return [
        party.name.strip() != "",
        party.email.strip() != "",
        party.phone.strip() != "",
        party.employment_status is not None,
        party.income is not None,
    ]


def form_percent(party: Party) -> int:
    filled = _form_fields_filled(party)
    return round_half_up(sum(filled) / len(filled) * 100)


def doc_percent(party: Party) -> int:
    """Share of required slots with status Received; optional slots never count."""
    if party.employment_status is None:
        return 0
    required = [r for r in resolve(party.employment_status, party.role) if r.required]
    if not required:
        return 100
    received = 0
    for requirement in required:
        slot = party.get_slot(requirement.doc_type)
        if slot is not None and slot.status == DocumentStatus.RECEIVED:
            received += 1
    return round_half_up(received / len(required) * 100)


def party_progress(party: Party) -> PartyProgress:
    form = form_percent(party)
    docs = doc_percent(party)
    return PartyProgress(
        form_percent=form,
        doc_percent=docs,
        overall_percent=round_half_up(form * FORM_WEIGHT + docs * DOC_WEIGHT),
    )


def dossier_progress(dossier: Dossier, reports: Mapping[str, PartyProgress]) -> int:
    """Aggregate score from the bid and the parties that reported progress.

    Parties without a report (just added, never touched) are left out of the
    average instead of counting as zero.
    """
    bid_points = BID_POINTS if dossier.has_bid else 0
    if not reports:
        return bid_points
    average = sum(r.overall_percent for r in reports.values()) / len(reports)
    party_points = round_half_up(average / 100 * PARTY_POINTS)
    return min(100, bid_points + party_points)


def summarize(dossier: Dossier, reports: Mapping[str, PartyProgress]) -> DossierProgress:
    return DossierProgress(
        percent=dossier_progress(dossier, reports),
        has_bid=dossier.has_bid,
        parties=dict(reports),
    )


def all_documents_complete(reports: Mapping[str, PartyProgress]) -> bool:
    """True when at least one party reported and every report has all documents."""
    return bool(reports) and all(r.is_docs_complete for r in reports.values())
