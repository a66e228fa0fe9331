"""Repository helpers for interacting with persistent storage."""

from __future__ import annotations

import csv
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Callable, Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pricecrawl.logging_config import get_logger

from .models_sql import Action, Base, Device, Manufacturer, Price

LOGGER = get_logger(__name__)

CSV_HEADER = [
    "manufacturer",
    "device",
    "action",
    "price",
    "date_collected",
]


@dataclass(frozen=True)
class PriceObservation:
    """One leaf of the calculator hierarchy and the price read for it."""

    manufacturer: str
    device: str
    action: str
    price: int | float | None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PriceWriter:
    """Find-or-create the hierarchy and append price observations.

    The session is owned by the caller; each method commits its own unit of
    work so rows written for earlier siblings survive later failures.
    """

    def __init__(
        self,
        session: Session,
        *,
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.session = session
        self.logger = logger or LOGGER
        self._clock = clock
        self._last_collected: datetime | None = None

    def _commit(self) -> None:
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def upsert_manufacturer(self, name: str) -> Manufacturer:
        """Return the manufacturer called *name*, creating it on first sighting."""

        manufacturer = self.session.execute(
            select(Manufacturer).where(Manufacturer.name == name)
        ).scalar_one_or_none()
        if manufacturer is None:
            manufacturer = Manufacturer(name=name)
            self.session.add(manufacturer)
            self._commit()
        return manufacturer

    def find_or_create_device(self, name: str, manufacturer_id: int) -> Device:
        device = self.session.execute(
            select(Device)
            .where(Device.name == name, Device.manufacturer_id == manufacturer_id)
            .limit(1)
        ).scalar_one_or_none()
        if device is None:
            device = Device(name=name, manufacturer_id=manufacturer_id)
            self.session.add(device)
            self._commit()
        return device

    def find_or_create_action(self, name: str, device_id: int) -> Action:
        action = self.session.execute(
            select(Action)
            .where(Action.name == name, Action.device_id == device_id)
            .limit(1)
        ).scalar_one_or_none()
        if action is None:
            action = Action(name=name, device_id=device_id)
            self.session.add(action)
            self._commit()
        return action

    def _next_timestamp(self) -> datetime:
        collected = self._clock()
        if self._last_collected is not None and collected <= self._last_collected:
            collected = self._last_collected + timedelta(microseconds=1)
        self._last_collected = collected
        return collected

    def insert_price(self, action_id: int, price: int | float | None) -> Price | None:
        """Append a price row for *action_id*; failures are logged, not raised."""

        entry = Price(action_id=action_id, price=price, date_collected=self._next_timestamp())
        try:
            self.session.add(entry)
            self.session.commit()
        except Exception as exc:
            self.session.rollback()
            self.logger.error("Error saving price for action_id=%s: %s", action_id, exc)
            return None
        return entry

    def record(self, observation: PriceObservation) -> Price | None:
        """Persist a full (manufacturer, device, action, price) observation."""

        manufacturer = self.upsert_manufacturer(observation.manufacturer)
        device = self.find_or_create_device(observation.device, manufacturer.id)
        action = self.find_or_create_action(observation.action, device.id)
        return self.insert_price(action.id, observation.price)


def price_history(session: Session, action_id: int) -> list[Price]:
    """Return every observation for *action_id*, oldest first."""

    stmt = (
        select(Price)
        .where(Price.action_id == action_id)
        .order_by(Price.date_collected.asc(), Price.id.asc())
    )
    return list(session.scalars(stmt))


def latest_prices(session: Session) -> list[dict[str, object]]:
    """Return the newest observation per action with its hierarchy names."""

    newest = (
        select(Price.action_id, func.max(Price.date_collected).label("latest"))
        .group_by(Price.action_id)
        .subquery()
    )
    stmt = (
        select(
            Manufacturer.name.label("manufacturer"),
            Device.name.label("device"),
            Action.name.label("action"),
            Price.price,
            Price.date_collected,
        )
        .join(newest, (newest.c.action_id == Price.action_id) & (newest.c.latest == Price.date_collected))
        .join(Action, Action.id == Price.action_id)
        .join(Device, Device.id == Action.device_id)
        .join(Manufacturer, Manufacturer.id == Device.manufacturer_id)
        .order_by(Manufacturer.name, Device.name, Action.name)
    )
    return [dict(row._mapping) for row in session.execute(stmt)]


def count_rows(session: Session, model: type[Base]) -> int:
    stmt = select(func.count()).select_from(model)
    return int(session.scalar(stmt) or 0)


def write_csv(rows: Iterable[dict[str, object]], csv_path: str) -> None:
    path = Path(csv_path)
    os.makedirs(path.parent, exist_ok=True)

    with NamedTemporaryFile(
        mode="w", newline="", encoding="utf-8", dir=str(path.parent), delete=False
    ) as handle:
        writer = csv.writer(handle)
        writer.writerow(CSV_HEADER)
        for row in rows:
            writer.writerow(_row_to_values(row))
        handle.flush()
        os.fsync(handle.fileno())
        tmp_name = handle.name

    os.replace(tmp_name, path)


def _row_to_values(row: dict[str, object]) -> list[str]:
    def _ts(value: object | None) -> str:
        if isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
        return str(value) if value is not None else ""

    price = row.get("price")
    if isinstance(price, float) and price.is_integer():
        price = int(price)

    return [
        str(row.get("manufacturer") or ""),
        str(row.get("device") or ""),
        str(row.get("action") or ""),
        "" if price is None else f"{price}",
        _ts(row.get("date_collected")),
    ]
