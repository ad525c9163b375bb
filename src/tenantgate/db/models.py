"""SQLAlchemy ORM models: single source of truth for the database schema.

Learn: Declarative mapping in SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Column types stay portable (no PostgreSQL-only types) so the same schema
runs on SQLite for tests and local development.

Key constraints live here rather than in service code alone:
- tenants.email / tenants.name unique
- tenants_api_keys.kid unique
- one active key per tenant (partial unique index)
- users (tenant_id, external_customer_id) unique, the sync natural key
- risk_profile.user_id unique, one profile per customer
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

STATUSES = ("active", "inactive", "suspended")
ENVIRONMENTS = ("production", "staging", "development")


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite drops tzinfo) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ══════════════════════════════════════════════════════════════
# Tenants and their API keys
# ══════════════════════════════════════════════════════════════


class Tenant(Base):
    """A customer organization. Owns API keys and end customers.

    Tenants are never hard-deleted; an administrator moves them to
    inactive or suspended instead, which blocks login.
    """

    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password: Mapped[str] = mapped_column(String(255), nullable=False)  # bcrypt hash
    salt: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="active", server_default="active"
    )  # active, inactive, suspended
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )


class TenantApiKey(Base):
    """API key for server-to-server calls.

    The raw secret is only shown once (on creation); this row stores its
    bcrypt hash and the public ``kid`` used for lookup. Rotation creates a
    new row whose ``rotated_from_key_id`` holds the id of the key it
    replaced.

    Statuses: active → inactive (deactivate), any → deleted (remove)
    """

    __tablename__ = "tenants_api_keys"
    __table_args__ = (
        Index("idx_api_keys_tenant_status", "tenant_id", "status"),
        Index("idx_api_keys_expires_at", "expires_at"),
        Index(
            "uq_api_keys_one_active_per_tenant",
            "tenant_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenants.id"), nullable=False
    )
    kid: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    api_key_hash: Mapped[str] = mapped_column(String(512), nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    environment: Mapped[str] = mapped_column(
        String(20), nullable=False, default="production", server_default="production"
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="active", server_default="active"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    last_used_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    revoked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rotated_from_key_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("tenants_api_keys.id"), nullable=True
    )


# ══════════════════════════════════════════════════════════════
# End customers
# ══════════════════════════════════════════════════════════════


class User(Base):
    """An end customer of a tenant, pushed in through customer sync.

    ``external_customer_id`` is the tenant's own identifier for the
    customer; together with ``tenant_id`` it is the sync natural key.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "external_customer_id", name="uq_users_tenant_external_id"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenants.id"), nullable=False
    )
    external_customer_id: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="active", server_default="active"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )


class RiskProfile(Base):
    """Per-customer risk scoring record. Exactly one per synced user."""

    __tablename__ = "risk_profile"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), unique=True, nullable=False
    )
    risk_score: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )


# ══════════════════════════════════════════════════════════════
# Lifecycle event log
# ══════════════════════════════════════════════════════════════


class Event(Base):
    """Append-only record of lifecycle changes.

    Written in the same transaction as the change it describes, so a
    rolled-back operation leaves no event behind. ``api_key.created`` rows
    are the trigger point for anything that notifies integrations.
    """

    __tablename__ = "events"
    __table_args__ = (
        Index("idx_events_stream", "stream_id", "id"),
        Index("idx_events_type", "type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stream_id: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    meta: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
