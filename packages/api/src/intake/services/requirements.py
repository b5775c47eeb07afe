# This project was developed with assistance from AI tools.
"""Document requirement resolution.

Maps a party's employment status and role to the ordered list of document
slots the intake form shows. The list order is the display order.
"""

import logging

from intake_db.enums import EmploymentStatus, PartyRole

from ..schemas.document import DocumentRequirement

logger = logging.getLogger(__name__)

# Human-readable labels and descriptions per document type
_DOC_TYPE_LABELS: dict[str, tuple[str, str]] = {
    "id_document": ("ID Document", "Passport or ID card"),
    "proof_of_enrollment": (
        "Proof of Enrollment",
        "Proof of enrollment at educational institution",
    ),
    "employment_contract": (
        "Employment Contract or Employer Statement",
        "Current employment contract or employer statement",
    ),
    "payslips": ("Salary Slips", "Last 3 months"),
    "chamber_of_commerce_extract": (
        "Chamber of Commerce Extract",
        "Recent extract Chamber of Commerce",
    ),
    "annual_statements": ("Annual Statements", "Last 1-2 years"),
    "tax_returns": ("Tax Returns", "Tax returns last years"),
    "pension_proof": ("Pension Proof", "Proof of pension income"),
    "bank_statement": ("Bank Statement", "With pension deposit"),
    "landlord_statement": ("Good Landlord Reference", "Statement from previous landlord"),
    "uwv_statement": ("UWV Document", "UWV insurance statement"),
    "brp_extract": ("BRP Extract", "Basic Registration of Persons excerpt"),
    "additional_income": ("Additional Income", "Side income, alimony, etc."),
    "landlord_reference": ("Reference", "Reference from previous landlord"),
    "rent_bank_statement": (
        "Rent Bank Statement",
        "Bank statement with last rental payments",
    ),
}

# (doc_type, required, multi-file (min, max) or None)
_RequirementRow = tuple[str, bool, tuple[int, int] | None]

# Documents by employment status, shared by tenants and guarantors.
DOCUMENT_REQUIREMENTS: dict[EmploymentStatus, list[_RequirementRow]] = {
    EmploymentStatus.STUDENT: [
        ("id_document", True, None),
        ("proof_of_enrollment", True, None),
        ("landlord_statement", False, None),
        ("uwv_statement", False, None),
        ("brp_extract", False, None),
        ("additional_income", False, None),
    ],
    EmploymentStatus.EMPLOYEE: [
        ("id_document", True, None),
        ("employment_contract", True, None),
        ("payslips", True, (3, 3)),
        ("landlord_statement", False, None),
        ("uwv_statement", False, None),
        ("brp_extract", False, None),
        ("additional_income", False, None),
    ],
    EmploymentStatus.ENTREPRENEUR: [
        ("id_document", True, None),
        ("chamber_of_commerce_extract", False, None),
        ("annual_statements", True, None),
        ("tax_returns", False, None),
        ("landlord_statement", False, None),
        ("uwv_statement", False, None),
        ("brp_extract", False, None),
        ("additional_income", False, None),
    ],
    EmploymentStatus.RETIRED: [
        ("id_document", True, None),
        ("pension_proof", True, None),
        ("bank_statement", True, None),
    ],
}

# Optional extras only tenants (not guarantors) are asked for.
TENANT_ONLY_REQUIREMENTS: list[_RequirementRow] = [
    ("landlord_reference", False, None),
    ("rent_bank_statement", False, None),
]


def _to_requirement(row: _RequirementRow) -> DocumentRequirement:
    doc_type, required, cardinality = row
    label, description = _DOC_TYPE_LABELS.get(doc_type, (doc_type, ""))
    if cardinality is None:
        return DocumentRequirement(
            doc_type=doc_type, label=label, description=description, required=required
        )
    min_files, max_files = cardinality
    return DocumentRequirement(
        doc_type=doc_type,
        label=label,
        description=description,
        required=required,
        multi_file=True,
        min_files=min_files,
        max_files=max_files,
    )


def _coerce_status(employment_status) -> EmploymentStatus | None:
    if employment_status is None or isinstance(employment_status, EmploymentStatus):
        return employment_status
    try:
        return EmploymentStatus(employment_status)
    except ValueError:
        logger.debug("Unknown employment status %r, no documents resolved", employment_status)
        return None


def resolve(
    employment_status: EmploymentStatus | str | None,
    role: PartyRole,
) -> list[DocumentRequirement]:
    """Return the ordered document requirements for a party.

    No status (or an unknown one) resolves to an empty list; callers show a
    "choose your status first" prompt instead of slots.
    """
    status = _coerce_status(employment_status)
    if status is None:
        return []

    rows = list(DOCUMENT_REQUIREMENTS.get(status, []))
    if role in PartyRole.tenant_roles():
        rows.extend(TENANT_ONLY_REQUIREMENTS)
    return [_to_requirement(row) for row in rows]


def find_requirement(
    employment_status: EmploymentStatus | str | None,
    role: PartyRole,
    doc_type: str,
) -> DocumentRequirement | None:
    """Return the requirement for one document type, if the party has it."""
    for requirement in resolve(employment_status, role):
        if requirement.doc_type == doc_type:
            return requirement
    return None


def is_multi_file_type(doc_type: str) -> bool:
    """True when any status configures this document type as multi-file."""
    for rows in DOCUMENT_REQUIREMENTS.values():
        for row_type, _required, cardinality in rows:
            if row_type == doc_type and cardinality is not None:
                return True
    return False
