"""Tests for prompt composition."""

from gadget_scout.core.prompts import PromptComposer

from conftest import result_for


def test_augment_without_results_returns_text_unchanged(composer):
    assert composer.augment("hello there", []) == "hello there"


def test_augment_lists_products_before_query(composer, catalog):
    p1 = catalog.get_by_id("p1")
    p5 = catalog.get_by_id("p5")

    prompt = composer.augment("noisy room podcast", [result_for(p1), result_for(p5, 0.5, 2)])

    assert f"- ID: p1, Name: {p1.name}, Desc: {p1.description}" in prompt
    assert f"- ID: p5, Name: {p5.name}" in prompt
    assert "do not simply repeat" in prompt
    assert prompt.index("ID: p1") < prompt.index("ID: p5") < prompt.index('My query: "noisy room podcast"')
    assert prompt.rstrip().endswith('My query: "noisy room podcast"')


def test_system_instruction_carries_persona_catalog_and_promo(composer, catalog):
    instruction = composer.system_instruction()

    assert "Gadgets and Those" in instruction
    assert "recommend_product" in instruction
    for product in catalog:
        assert f"ID: {product.id}" in instruction
    assert "GADGETS15" in instruction
    assert "15%" in instruction


def test_system_instruction_without_promo(catalog):
    instruction = PromptComposer(catalog, promo_code=None).system_instruction()
    assert "CURRENT PROMO" not in instruction


def test_greeting_names_the_featured_product(composer, catalog):
    greeting = composer.greeting_prompt()

    assert catalog.featured().name in greeting
    assert f"{len(catalog)} gadgets" in greeting


def test_featured_product_can_be_configured(catalog_records):
    from gadget_scout.catalog.repository import parse_catalog

    catalog = parse_catalog(catalog_records, featured_id="p3")
    assert "VoltCore 20K Power Bank" in PromptComposer(catalog).greeting_prompt()
