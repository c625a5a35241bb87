"""Tests for catalog parsing and loading."""

import json

import pytest

from gadget_scout.catalog.repository import load_catalog, parse_catalog
from gadget_scout.core.exceptions import CatalogLoadException

from conftest import P1_RECORD


def test_parse_document_and_plain_list(catalog_records):
    from_document = parse_catalog({"products": catalog_records})
    from_list = parse_catalog(catalog_records)

    assert [p.id for p in from_document] == [p.id for p in from_list] == ["p1", "p2", "p3", "p4", "p5"]
    assert from_document.version == from_list.version


def test_camel_case_fields_are_read(single_catalog):
    product = single_catalog.get_by_id("p1")

    assert product.image_url == "https://example.com/p1.jpg"
    assert product.to_display()["affiliateUrl"] == "https://example.com/buy/p1"


def test_invalid_record_is_rejected():
    with pytest.raises(CatalogLoadException):
        parse_catalog([{"id": "x", "name": "No price"}])


def test_non_collection_document_is_rejected():
    with pytest.raises(CatalogLoadException):
        parse_catalog("products")


def test_duplicate_ids_are_rejected():
    with pytest.raises(CatalogLoadException):
        parse_catalog([P1_RECORD, dict(P1_RECORD, name="Copy")])


def test_version_changes_with_content():
    changed = parse_catalog([dict(P1_RECORD, price=99)])
    assert changed.version != parse_catalog([P1_RECORD]).version


def test_featured_defaults_to_first(catalog, catalog_records):
    assert catalog.featured().id == "p1"
    assert parse_catalog(catalog_records, featured_id="p4").featured().id == "p4"
    assert parse_catalog(catalog_records, featured_id="nope").featured().id == "p1"
    assert parse_catalog([]).featured() is None


def test_unknown_id_lookup(catalog):
    assert catalog.get_by_id("missing") is None
    assert len(catalog) == 5
    assert not parse_catalog([])


def test_document_text(single_catalog):
    assert single_catalog.get_by_id("p1").document() == (
        "Product: Nexus Pro Mic-Set. "
        "Description: Studio-grade USB microphone kit for podcasters. "
        "Features: cardioid pattern, pop filter, boom arm."
    )


async def test_load_catalog_from_file(tmp_path, catalog_records):
    path = tmp_path / "products.json"
    path.write_text(json.dumps({"products": catalog_records}), encoding="utf-8")

    catalog = await load_catalog(str(path), featured_id="p2")

    assert len(catalog) == 5
    assert catalog.featured().id == "p2"


async def test_load_catalog_missing_file(tmp_path):
    with pytest.raises(CatalogLoadException):
        await load_catalog(str(tmp_path / "absent.json"))


async def test_load_catalog_bad_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(CatalogLoadException):
        await load_catalog(str(path))
