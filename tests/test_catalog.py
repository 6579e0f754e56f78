from __future__ import annotations

import pytest

from core.catalog import GATE_KEYS, HOOK_KEYS, PATTERN_KEYS, InsightCatalog, build_default_catalog, default_templates
from core.errors import CatalogError
from shared.enums import InsightKind


def test_default_catalog_size_and_unique_ids() -> None:
    templates = default_templates()
    catalog = build_default_catalog()

    assert len(catalog) >= 65
    assert len({item.id for item in templates}) == len(templates)
    for kind in (InsightKind.GATE_FAIL, InsightKind.POSITIVE_HOOK, InsightKind.NEGATIVE_PATTERN, InsightKind.GENERAL_TIP):
        assert catalog.by_kind(kind)


def test_duplicate_ids_are_rejected() -> None:
    template = default_templates()[0]
    with pytest.raises(CatalogError):
        InsightCatalog([template, template])


def test_every_trigger_key_has_templates() -> None:
    catalog = build_default_catalog()

    for gate_key in GATE_KEYS:
        assert catalog.gate_insights(gate_key)
    for hook_key in HOOK_KEYS:
        assert catalog.hook_insights(hook_key=hook_key)
    for pattern_key in PATTERN_KEYS:
        assert catalog.pattern_insights(pattern_key=pattern_key)


def test_lookups() -> None:
    catalog = build_default_catalog()

    assert "gate_min_messages_too_short" in catalog
    assert catalog.get("gate_min_messages_too_short").kind == InsightKind.GATE_FAIL
    assert catalog.get("missing") is None
    assert [item.id for item in catalog.gate_insights("GATE_MIN_MESSAGES")] == [
        "gate_min_messages_too_short",
        "gate_min_messages_engagement",
        "gate_min_messages_follow_up",
    ]
    assert catalog.gate_insights("GATE_UNKNOWN") == []
    assert {item.category for item in catalog.hook_insights(category="confidence")} == {"confidence"}
    assert len(catalog.general_tips()) == 10
    assert all(item.requires is None for item in catalog.general_tips())
    assert all(item.category == "clarity" for item in catalog.by_category("clarity"))
