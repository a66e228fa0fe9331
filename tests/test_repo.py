from __future__ import annotations

import csv
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from pricecrawl.sample_data import SAMPLE_PRICES, populate_sample_data
from pricecrawl.storage import repo
from pricecrawl.storage.models_sql import Action, Device, Manufacturer, Price
from pricecrawl.storage.repo import PriceObservation, PriceWriter

FIXED_NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_find_or_create_is_idempotent(db_session) -> None:
    writer = PriceWriter(db_session)

    apple = writer.upsert_manufacturer("Apple")
    assert writer.upsert_manufacturer("Apple").id == apple.id

    first = writer.find_or_create_device("iPhone 15", apple.id)
    second = writer.find_or_create_device("iPhone 15", apple.id)
    assert first.id == second.id
    assert repo.count_rows(db_session, Device) == 1

    samsung = writer.upsert_manufacturer("Samsung")
    other = writer.find_or_create_device("iPhone 15", samsung.id)
    assert other.id != first.id

    action = writer.find_or_create_action("Akku Reparatur", first.id)
    assert writer.find_or_create_action("Akku Reparatur", first.id).id == action.id
    assert repo.count_rows(db_session, Action) == 1


def test_insert_price_appends_with_strictly_increasing_timestamps(db_session) -> None:
    writer = PriceWriter(db_session, clock=lambda: FIXED_NOW)
    manufacturer = writer.upsert_manufacturer("Apple")
    device = writer.find_or_create_device("iPhone 15", manufacturer.id)
    action = writer.find_or_create_action("Display Reparatur", device.id)

    writer.insert_price(action.id, 299)
    writer.insert_price(action.id, 279)

    history = repo.price_history(db_session, action.id)
    assert [row.price for row in history] == [299, 279]
    assert history[1].date_collected - history[0].date_collected == timedelta(microseconds=1)


def test_insert_price_accepts_missing_price(db_session) -> None:
    writer = PriceWriter(db_session)
    entry = writer.record(PriceObservation("Google", "Pixel 8", "Akku Reparatur", None))

    assert entry is not None
    assert db_session.scalar(select(Price.price)) is None


def test_insert_price_failure_is_logged_and_swallowed(db_session, test_logger, caplog, monkeypatch) -> None:
    writer = PriceWriter(db_session, logger=test_logger)
    manufacturer = writer.upsert_manufacturer("Apple")
    device = writer.find_or_create_device("iPhone 15", manufacturer.id)
    action = writer.find_or_create_action("Display Reparatur", device.id)

    def broken_commit() -> None:
        raise RuntimeError("disk full")

    monkeypatch.setattr(db_session, "commit", broken_commit)

    assert writer.insert_price(action.id, 299) is None
    assert any(
        "disk full" in record.getMessage() for record in caplog.records if record.levelno == logging.ERROR
    )
    monkeypatch.undo()
    assert repo.count_rows(db_session, Price) == 0


def test_latest_prices_and_csv_export(db_session, tmp_path) -> None:
    stamps = iter([FIXED_NOW, FIXED_NOW + timedelta(days=7), FIXED_NOW])
    writer = PriceWriter(db_session, clock=lambda: next(stamps))
    writer.record(PriceObservation("Apple", "iPhone 15", "Display Reparatur", 299))
    writer.record(PriceObservation("Apple", "iPhone 15", "Display Reparatur", 279))
    writer.record(PriceObservation("Samsung", "Galaxy S23", "Akku Reparatur", 89.5))

    rows = repo.latest_prices(db_session)
    assert [(row["manufacturer"], row["price"]) for row in rows] == [("Apple", 279), ("Samsung", 89.5)]

    out_path = tmp_path / "exports" / "prices.csv"
    repo.write_csv(rows, str(out_path))

    with out_path.open(newline="", encoding="utf-8") as handle:
        exported = list(csv.reader(handle))
    assert exported[0] == repo.CSV_HEADER
    assert exported[1] == ["Apple", "iPhone 15", "Display Reparatur", "279", "2024-03-08T12:00:00Z"]
    assert exported[2][3] == "89.5"


def test_populate_sample_data(db_session) -> None:
    written = populate_sample_data(db_session)

    assert written == 30
    assert repo.count_rows(db_session, Manufacturer) == len(SAMPLE_PRICES)
    assert repo.count_rows(db_session, Device) == 6
    assert repo.count_rows(db_session, Action) == 30

    again = populate_sample_data(db_session)
    assert again == 30
    assert repo.count_rows(db_session, Action) == 30
    assert repo.count_rows(db_session, Price) == 60
