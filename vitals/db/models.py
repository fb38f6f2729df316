from __future__ import annotations

import datetime as dt
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from vitals.utils.time import utcnow


class Base(DeclarativeBase):
    pass


class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (
        UniqueConstraint("organization_id", "external_id"),
        Index("ix_clients_org_external", "organization_id", "external_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(Integer, nullable=False)
    primary_advisor_id: Mapped[Optional[int]] = mapped_column(Integer)
    integration_config_id: Mapped[Optional[int]] = mapped_column(Integer)
    # Portfolio-platform client id; accounts and AUM history are keyed by it.
    external_id: Mapped[Optional[str]] = mapped_column(String(100))

    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    email_address: Mapped[Optional[str]] = mapped_column(String(255))
    phone_number: Mapped[Optional[str]] = mapped_column(String(30))
    aum: Mapped[Optional[float]] = mapped_column(Float)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    start_date: Mapped[Optional[dt.date]] = mapped_column(Date)
    source: Mapped[Optional[str]] = mapped_column(String(50))
    raw_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    accounts: Mapped[list["PortfolioAccount"]] = relationship(back_populates="client")


class PortfolioAccount(Base):
    __tablename__ = "portfolio_accounts"
    __table_args__ = (UniqueConstraint("integration_config_id", "external_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id"), nullable=False)
    integration_config_id: Mapped[int] = mapped_column(Integer, nullable=False)
    external_id: Mapped[str] = mapped_column(String(100), nullable=False)
    external_client_id: Mapped[Optional[str]] = mapped_column(String(100))

    name: Mapped[Optional[str]] = mapped_column(String(255))
    number: Mapped[Optional[str]] = mapped_column(String(100))
    account_type: Mapped[Optional[str]] = mapped_column(String(100))
    custodian: Mapped[Optional[str]] = mapped_column(String(255))
    current_value: Mapped[Optional[float]] = mapped_column(Float)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    start_date: Mapped[Optional[dt.date]] = mapped_column(Date)
    raw_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    last_synced_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    client: Mapped["Client"] = relationship(back_populates="accounts")


class AumHistoryPoint(Base):
    __tablename__ = "aum_history"
    __table_args__ = (UniqueConstraint("integration_config_id", "external_entity_id", "as_of_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    integration_config_id: Mapped[int] = mapped_column(Integer, nullable=False)
    external_entity_id: Mapped[str] = mapped_column(String(100), nullable=False)
    as_of_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(10), nullable=False, default="USD")
    raw_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class IntegrationCredential(Base):
    __tablename__ = "integration_credentials"
    __table_args__ = (UniqueConstraint("user_id", "integration_config_id", "key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    organization_id: Mapped[int] = mapped_column(Integer, nullable=False)
    integration_config_id: Mapped[int] = mapped_column(Integer, nullable=False)
    key: Mapped[str] = mapped_column(String(64), nullable=False)
    value_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
