import pytest
from sqlalchemy import select

from pricecrawl.errors import CatalogImportError
from pricecrawl.importer import import_catalog_csv, manufacturer_from_article_name, parse_amount
from pricecrawl.storage.models_sql import CatalogManufacturer, CatalogPart

HEADER = "ARTIKELNUMMER,ARTIKELBEZEICHNUNG,EAN,BESCHREIBUNG,HERSTELLERARTIKELNUMMER,EINKAUFSPREIS,NETTOPREIS1,GEWICHT\n"


def _write_csv(path, *rows: str) -> None:
    path.write_text("\ufeff" + HEADER + "".join(rows), encoding="utf-8")


def test_parse_amount_variants() -> None:
    assert parse_amount("12,50") == 12.5
    assert parse_amount("$7.25") == 7.25
    assert parse_amount("") == 0.0
    assert parse_amount(None) == 0.0
    assert parse_amount("n/a") == 0.0


def test_manufacturer_from_article_name() -> None:
    assert manufacturer_from_article_name("Display für Apple iPhone 12") == "Apple"
    assert manufacturer_from_article_name("Akku Samsung") is None


def test_import_upserts_parts_and_manufacturers(db_session, tmp_path, test_logger) -> None:
    path = tmp_path / "parts.csv"
    _write_csv(
        path,
        "A-1,Display für Apple iPhone 12,4001,OLED,661-1,\"45,90\",59.00,0.1\n",
        "A-2,Akku für Apple iPhone 12,4002,,661-2,12.00,19.00,0.05\n",
        "S-1,Akku für Samsung Galaxy S21,4003,,GH-1,10.00,15.00,0.05\n",
        ",Missing number,,,,,,\n",
        "X-1,Kabel,,,,,,\n",
    )

    result = import_catalog_csv(path, db_session, logger=test_logger)

    assert (result.rows_read, result.imported, result.skipped) == (5, 3, 2)
    assert sorted(db_session.scalars(select(CatalogManufacturer.name))) == ["Apple", "Samsung"]
    display = db_session.scalar(select(CatalogPart).where(CatalogPart.article_number == "A-1"))
    assert display.purchase_price == 45.9
    assert display.net_price == 59.0
    assert display.description == "OLED"
    assert display.manufacturer.name == "Apple"

    _write_csv(path, "A-1,Display für Apple iPhone 12,4001,OLED,661-1,40.00,55.00,0.1\n")
    import_catalog_csv(path, db_session, logger=test_logger)

    parts = list(db_session.scalars(select(CatalogPart).where(CatalogPart.article_number == "A-1")))
    assert len(parts) == 1
    assert parts[0].purchase_price == 40.0


def test_import_missing_file(db_session, tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        import_catalog_csv(tmp_path / "nope.csv", db_session)


def test_import_database_error_is_wrapped(db_session, tmp_path, monkeypatch) -> None:
    path = tmp_path / "parts.csv"
    _write_csv(path, "A-1,Display für Apple iPhone 12,,,,1,1,1\n")

    def broken_commit() -> None:
        raise RuntimeError("database is locked")

    monkeypatch.setattr(db_session, "commit", broken_commit)

    with pytest.raises(CatalogImportError, match="database is locked"):
        import_catalog_csv(path, db_session)
