"""Import the supplier parts catalog CSV into the catalog tables."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from pricecrawl.errors import CatalogImportError
from pricecrawl.logging_config import get_logger
from pricecrawl.storage.models_sql import CatalogManufacturer, CatalogPart

LOGGER = get_logger(__name__)

# CSV header -> CatalogPart attribute
COLUMN_MAP = {
    "ARTIKELNUMMER": "article_number",
    "ARTIKELBEZEICHNUNG": "article_name",
    "EAN": "ean",
    "BESCHREIBUNG": "description",
    "HERSTELLERARTIKELNUMMER": "manufacturer_article_number",
    "EINKAUFSPREIS": "purchase_price",
    "NETTOPREIS1": "net_price",
    "GEWICHT": "weight",
}
NUMERIC_FIELDS = ("purchase_price", "net_price", "weight")

# Article names look like "Display für Apple iPhone 12 ..."; the manufacturer
# is the third word.
MANUFACTURER_TOKEN_INDEX = 2


@dataclass
class ImportResult:
    rows_read: int = 0
    imported: int = 0
    skipped: int = 0


def parse_amount(value: str | None) -> float:
    """Parse a price/weight cell, returning 0.0 for blanks and garbage."""

    if value is None:
        return 0.0
    cleaned = value.replace("$", "").strip()
    if "," in cleaned and "." not in cleaned:
        cleaned = cleaned.replace(",", ".")
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def manufacturer_from_article_name(article_name: str) -> str | None:
    tokens = article_name.split()
    if len(tokens) <= MANUFACTURER_TOKEN_INDEX:
        return None
    return tokens[MANUFACTURER_TOKEN_INDEX]


def parse_row(row: dict[str, str | None]) -> dict[str, Any]:
    parsed: dict[str, Any] = {}
    for column, attribute in COLUMN_MAP.items():
        raw = row.get(column)
        if attribute in NUMERIC_FIELDS:
            parsed[attribute] = parse_amount(raw)
        else:
            parsed[attribute] = raw.strip() if raw and raw.strip() else None
    return parsed


def _upsert_manufacturer(session: Session, name: str) -> CatalogManufacturer:
    manufacturer = session.execute(
        select(CatalogManufacturer).where(CatalogManufacturer.name == name)
    ).scalar_one_or_none()
    if manufacturer is None:
        manufacturer = CatalogManufacturer(name=name)
        session.add(manufacturer)
        session.flush()
    return manufacturer


def _upsert_part(session: Session, values: dict[str, Any], manufacturer_id: int) -> CatalogPart:
    part = session.execute(
        select(CatalogPart).where(CatalogPart.article_number == values["article_number"])
    ).scalar_one_or_none()
    if part is None:
        part = CatalogPart(**values, catalog_manufacturer_id=manufacturer_id)
        session.add(part)
    else:
        for attribute, value in values.items():
            setattr(part, attribute, value)
        part.catalog_manufacturer_id = manufacturer_id
    session.flush()
    return part


def import_catalog_csv(
    path: str | Path,
    session: Session,
    *,
    logger: logging.Logger | None = None,
) -> ImportResult:
    """Upsert every valid CSV row as a catalog part; commit once at the end."""

    log = logger or LOGGER
    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Catalog CSV not found: {csv_path}")

    log.info("Starting CSV import from file: %s", csv_path)
    result = ImportResult()
    rows: list[dict[str, Any]] = []

    with csv_path.open("r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        log.info("CSV headers found: %s", ", ".join(reader.fieldnames or []))
        for raw in reader:
            result.rows_read += 1
            parsed = parse_row(raw)
            if not parsed["article_number"] or not parsed["article_name"]:
                log.warning("Row %d missing article number or name; skipping", result.rows_read)
                result.skipped += 1
                continue
            if manufacturer_from_article_name(parsed["article_name"]) is None:
                log.warning(
                    "Row %d article name %r has no manufacturer token; skipping",
                    result.rows_read,
                    parsed["article_name"],
                )
                result.skipped += 1
                continue
            rows.append(parsed)

    if not rows:
        log.warning("No data to import from the CSV.")
        return result

    try:
        for values in rows:
            manufacturer = _upsert_manufacturer(
                session, manufacturer_from_article_name(values["article_name"]) or ""
            )
            _upsert_part(session, values, manufacturer.id)
            result.imported += 1
        session.commit()
    except Exception as exc:
        session.rollback()
        raise CatalogImportError(f"Error importing CSV data: {exc}") from exc

    log.info(
        "CSV import complete | rows=%d imported=%d skipped=%d",
        result.rows_read,
        result.imported,
        result.skipped,
    )
    return result


__all__ = ["ImportResult", "import_catalog_csv", "manufacturer_from_article_name", "parse_amount"]
