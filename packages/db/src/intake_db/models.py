# This project was developed with assistance from AI tools.
"""
Rental intake -- relational models

Dossiers (one rental application per property), the parties on them,
uploaded document metadata, and the CRM accounts the parties belong to.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from .database import Base
from .enums import DocumentationStatus, DocumentStatus, EmploymentStatus, PartyRole


class Account(Base):
    """CRM account of a person (keyed by WhatsApp number)."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_name = Column(String(255), nullable=True)
    whatsapp_number = Column(String(50), nullable=True, index=True)
    status = Column(String(50), nullable=True)
    documentation_status = Column(
        Enum(DocumentationStatus, name="documentation_status", native_enum=False),
        nullable=True,
    )
    # [{"account_id": int, "role": str, "name": str}, ...]
    co_tenants = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False,
    )

    def __repr__(self):
        return f"<Account(id={self.id}, status='{self.status}')>"


class Dossier(Base):
    """Rental application case file."""

    __tablename__ = "dossiers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    bid_amount = Column(Integer, nullable=False, default=0)
    start_date = Column(Date, nullable=True)
    motivation = Column(String(500), nullable=True)
    months_advance = Column(Integer, nullable=False, default=0)
    property_address = Column(Text, nullable=True)
    property_conditions = Column(JSON, nullable=True)
    is_complete = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False,
    )

    parties = relationship(
        "Party", back_populates="dossier", cascade="all, delete-orphan", order_by="Party.id",
    )

    def __repr__(self):
        return f"<Dossier(id={self.id}, bid={self.bid_amount})>"


class Party(Base):
    """One person on a dossier: tenant, co-tenant or guarantor."""

    __tablename__ = "parties"

    id = Column(Integer, primary_key=True, autoincrement=True)
    dossier_id = Column(
        Integer, ForeignKey("dossiers.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    account_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True,
    )
    role = Column(Enum(PartyRole, name="party_role", native_enum=False), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, default="")
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    postcode = Column(String(20), nullable=True)
    city = Column(String(100), nullable=True)
    employment_status = Column(
        Enum(EmploymentStatus, name="employment_status", native_enum=False),
        nullable=True,
    )
    gross_monthly_income = Column(Numeric(12, 2), nullable=True)
    guarantees_party_id = Column(
        Integer, ForeignKey("parties.id", ondelete="SET NULL"), nullable=True,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False,
    )

    dossier = relationship("Dossier", back_populates="parties")
    documents = relationship(
        "Document", back_populates="party", cascade="all, delete-orphan", order_by="Document.id",
    )

    def __repr__(self):
        return f"<Party(id={self.id}, role='{self.role}')>"


class Document(Base):
    """Metadata of one uploaded evidence file."""

    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    party_id = Column(
        Integer, ForeignKey("parties.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    phone_number = Column(String(50), nullable=True)
    doc_type = Column(String(50), nullable=False)
    filename = Column(String(255), nullable=False)
    storage_path = Column(String(500), nullable=False)
    status = Column(
        Enum(DocumentStatus, name="document_status", native_enum=False),
        nullable=False,
        default=DocumentStatus.RECEIVED,
    )
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    party = relationship("Party", back_populates="documents")

    def __repr__(self):
        return f"<Document(id={self.id}, type='{self.doc_type}')>"
