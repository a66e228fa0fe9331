"""SQLAlchemy ORM models for crawled repair prices and the parts catalog."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Declarative base class for ORM models."""


class Manufacturer(Base):
    """Device manufacturer as listed in the calculator's first select."""

    __tablename__ = "manufacturers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)

    devices: Mapped[list["Device"]] = relationship(back_populates="manufacturer")


class Device(Base):
    """Device model offered for a manufacturer."""

    __tablename__ = "devices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    manufacturer_id: Mapped[int] = mapped_column(ForeignKey("manufacturers.id"), nullable=False)

    manufacturer: Mapped[Manufacturer] = relationship(back_populates="devices")
    actions: Mapped[list["Action"]] = relationship(back_populates="device")

    __table_args__ = (
        UniqueConstraint("name", "manufacturer_id", name="uq_devices_name_manufacturer"),
    )


class Action(Base):
    """Repair operation (e.g. "Display Reparatur") offered for a device."""

    __tablename__ = "actions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    device_id: Mapped[int] = mapped_column(ForeignKey("devices.id"), nullable=False)

    device: Mapped[Device] = relationship(back_populates="actions")
    prices: Mapped[list["Price"]] = relationship(back_populates="action")

    __table_args__ = (
        UniqueConstraint("name", "device_id", name="uq_actions_name_device"),
    )


class Price(Base):
    """Append-only price observation for an action."""

    __tablename__ = "prices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action_id: Mapped[int] = mapped_column(ForeignKey("actions.id"), nullable=False)
    price: Mapped[float | None] = mapped_column(Float, nullable=True)
    date_collected: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    action: Mapped[Action] = relationship(back_populates="prices")

    __table_args__ = (
        Index("ix_prices_action_collected", "action_id", "date_collected"),
    )


class CatalogManufacturer(Base):
    """Manufacturer derived from the parts catalog article names."""

    __tablename__ = "catalog_manufacturers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)

    parts: Mapped[list["CatalogPart"]] = relationship(back_populates="manufacturer")


class CatalogPart(Base):
    """Spare part imported from the supplier CSV."""

    __tablename__ = "catalog_parts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    article_number: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    article_name: Mapped[str] = mapped_column(String, nullable=False)
    ean: Mapped[str | None] = mapped_column(String, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    manufacturer_article_number: Mapped[str | None] = mapped_column(String, nullable=True)
    purchase_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    net_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    weight: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    catalog_manufacturer_id: Mapped[int] = mapped_column(
        ForeignKey("catalog_manufacturers.id"), nullable=False
    )

    manufacturer: Mapped[CatalogManufacturer] = relationship(back_populates="parts")

    __table_args__ = (
        Index("ix_catalog_parts_manufacturer", "catalog_manufacturer_id"),
    )
