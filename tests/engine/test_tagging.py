# tests/engine/test_tagging.py
"""Tests for entity tagging."""

from datetime import datetime

import pytest

from tests.fixtures.factories import at, make_raw, order_entity


def _versions(*records):
    from hookbridge.engine.versioning import version_records

    return version_records("order", records)


class TestEntityTagger:
    """Versions gain primary, PIT, foreign and composite hooks."""

    def test_primary_and_pit_hooks(self) -> None:
        from hookbridge.core.hooks import pit_hook
        from hookbridge.core.temporal import MIN_SENTINEL
        from hookbridge.engine.tagging import EntityTagger

        (version,) = _versions(make_raw("O1", "2024-01-01", customer_id="C1"))
        tagged = EntityTagger(order_entity()).tag(version)

        assert tagged.entity == "order"
        assert tagged.primary_hook == "crm.order.id|O1"
        assert tagged.pit_hook == pit_hook("crm.order.id|O1", MIN_SENTINEL)
        assert tagged.hooks == {"customer": "crm.customer.id|C1"}

    def test_null_foreign_key_gives_null_hook(self) -> None:
        from hookbridge.engine.tagging import EntityTagger

        (version,) = _versions(make_raw("O1", "2024-01-01", customer_id=None))
        assert EntityTagger(order_entity()).tag(version).hooks == {"customer": None}

    def test_absent_foreign_column_gives_null_hook(self) -> None:
        from hookbridge.engine.tagging import EntityTagger

        (version,) = _versions(make_raw("O1", "2024-01-01"))
        assert EntityTagger(order_entity()).tag(version).hooks == {"customer": None}

    def test_composite_uses_entity_name_for_primary(self) -> None:
        from hookbridge.core.config import CompositeHookSettings, EntitySettings, HookSettings
        from hookbridge.engine.tagging import EntityTagger

        entity = EntitySettings(
            name="line",
            concept="crm.order_line.id",
            key_column="line_id",
            hooks=[HookSettings(name="product", concept="pim.product.sku", column="sku")],
            composites=[CompositeHookSettings(name="line_product", components=["line", "product"])],
        )
        (version,) = _versions(make_raw("L1", "2024-01-01", sku="X1"))
        tagged = EntityTagger(entity).tag(version)

        assert tagged.hooks["line_product"] == "crm.order_line.id|L1~pim.product.sku|X1"

    def test_registry_sees_every_token(self) -> None:
        from hookbridge.core.hooks import HookRegistry
        from hookbridge.engine.tagging import EntityTagger

        registry = HookRegistry()
        versions = _versions(make_raw("O1", "2024-01-01", customer_id="C1"), make_raw("O1", "2024-02-01", customer_id="C1"))
        EntityTagger(order_entity(), registry=registry).tag_all(versions)

        # primary, two PIT hooks, one foreign hook
        assert len(registry) == 4
        assert "crm.customer.id|C1" in registry


class TestEntityRelation:
    """The versioned entity table."""

    def test_columns_and_rows(self) -> None:
        from hookbridge.engine.tagging import EntityTagger, entity_relation

        entity = order_entity()
        versions = _versions(
            make_raw("O1", "2024-01-01", order_id="O1", customer_id="C1"),
            make_raw("O1", "2024-02-01", order_id="O1", customer_id="C2", note="moved"),
        )
        relation = entity_relation(entity, EntityTagger(entity).tag_all(versions))

        assert relation.name == "order"
        assert relation.column_names == (
            "_pit_hook__order",
            "_hook__order",
            "_hook__customer",
            "_record__version",
            "_record__valid_from",
            "_record__valid_to",
            "_record__is_current",
            "_record__loaded_at",
            "_record__updated_at",
            "order_id",
            "customer_id",
            "note",
        )
        assert relation.get_column("_record__valid_from").python_type is datetime
        assert relation.rows[0]["note"] is None
        assert relation.rows[1]["_hook__customer"] == "crm.customer.id|C2"
        assert relation.rows[1]["_record__valid_from"] == at("2024-02-01")

    def test_payload_clash_rejected(self) -> None:
        from hookbridge.engine.tagging import EntityTagger, entity_relation

        entity = order_entity()
        versions = _versions(make_raw("O1", "2024-01-01", _record__version=7))
        with pytest.raises(ValueError, match="collide"):
            entity_relation(entity, EntityTagger(entity).tag_all(versions))
