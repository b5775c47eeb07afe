# This project was developed with assistance from AI tools.
"""
Domain enums for the rental application intake flow.

Shared domain types used by both SQLAlchemy models (intake_db package)
and Pydantic schemas (intake package).
"""

import enum


class PartyRole(str, enum.Enum):
    PRIMARY_TENANT = "primary_tenant"
    CO_TENANT = "co_tenant"
    GUARANTOR = "guarantor"

    @classmethod
    def tenant_roles(cls) -> frozenset["PartyRole"]:
        """Roles that rent the property (and can be guaranteed)."""
        return frozenset({cls.PRIMARY_TENANT, cls.CO_TENANT})

    @classmethod
    def max_per_dossier(cls) -> dict["PartyRole", int]:
        """Roster cardinality limits per role."""
        return {
            cls.PRIMARY_TENANT: 1,
            cls.CO_TENANT: 2,
            cls.GUARANTOR: 2,
        }


class EmploymentStatus(str, enum.Enum):
    STUDENT = "student"
    EMPLOYEE = "employee"
    ENTREPRENEUR = "entrepreneur"
    RETIRED = "retired"


class DocumentStatus(str, enum.Enum):
    MISSING = "missing"
    RECEIVED = "received"


class DocumentationStatus(str, enum.Enum):
    """CRM-side summary of a tenant account's paperwork."""

    PENDING = "Pending"
    COMPLETE = "Complete"


class AccountStatus(str, enum.Enum):
    DEAL_IN_PROGRESS = "Deal In Progress"
