# tests/core/test_config.py
"""Tests for configuration schema and loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

SETTINGS_YAML = """
entities:
  - name: customer
    concept: crm.customer.id
    key_column: customer_id
  - name: order
    concept: crm.order.id
    key_column: order_id
    sequence_column: _sequence
    source: raw/orders.csv
    hooks:
      - {name: customer, concept: crm.customer.id, column: customer_id}

bridges:
  - peripheral: orders
    primary: order
    joins:
      - {name: customer, entity: customer, hook: customer}
    events:
      - {event_type: due, column: due_date}

logging:
  level: info
"""


class TestEntitySettings:
    """Entity declarations."""

    def test_defaults(self) -> None:
        from hookbridge.core.config import EntitySettings

        entity = EntitySettings(name="customer", concept="crm.customer.id", key_column="customer_id")

        assert entity.loaded_at_column == "_loaded_at"
        assert entity.sequence_column is None
        assert entity.hooks == []
        assert entity.source is None

    def test_settings_are_frozen(self) -> None:
        from hookbridge.core.config import EntitySettings

        entity = EntitySettings(name="customer", concept="crm.customer.id", key_column="customer_id")
        with pytest.raises(ValidationError):
            entity.name = "other"  # type: ignore[misc]

    @pytest.mark.parametrize("name", ["bridge", "bridge_row", "epoch", "not-an-identifier", ""])
    def test_reserved_or_invalid_names_rejected(self, name: str) -> None:
        from hookbridge.core.config import EntitySettings

        with pytest.raises(ValidationError):
            EntitySettings(name=name, concept="c", key_column="k")

    def test_epoch_concept_rejected(self) -> None:
        from hookbridge.core.config import EntitySettings

        with pytest.raises(ValidationError, match="reserved 'epoch' namespace"):
            EntitySettings(name="day", concept="epoch.date", key_column="k")

    def test_duplicate_hook_names_rejected(self) -> None:
        from hookbridge.core.config import EntitySettings, HookSettings

        with pytest.raises(ValidationError, match="duplicate hook names"):
            EntitySettings(
                name="order",
                concept="crm.order.id",
                key_column="order_id",
                hooks=[
                    HookSettings(name="customer", concept="crm.customer.id", column="a"),
                    HookSettings(name="customer", concept="crm.customer.id", column="b"),
                ],
            )

    def test_composite_components_must_be_known(self) -> None:
        from hookbridge.core.config import CompositeHookSettings, EntitySettings

        with pytest.raises(ValidationError, match="unknown hooks"):
            EntitySettings(
                name="order",
                concept="crm.order.id",
                key_column="order_id",
                composites=[CompositeHookSettings(name="pair", components=["order", "product"])],
            )

    def test_composite_needs_two_components(self) -> None:
        from hookbridge.core.config import CompositeHookSettings

        with pytest.raises(ValidationError):
            CompositeHookSettings(name="solo", components=["order"])

    def test_get_hook(self) -> None:
        from tests.fixtures.factories import order_entity

        entity = order_entity()
        assert entity.get_hook("customer") is not None
        assert entity.get_hook("missing") is None


class TestBridgeSettings:
    """Bridge declarations."""

    def test_join_defaults(self) -> None:
        from hookbridge.contracts import JoinPolicy, OrphanPolicy
        from hookbridge.core.config import JoinSettings

        join = JoinSettings(name="customer", entity="customer", hook="customer")

        assert join.policy is JoinPolicy.OUTER
        assert join.on_orphan is OrphanPolicy.WARN
        assert join.via is None

    def test_policies_parse_from_strings(self) -> None:
        from hookbridge.contracts import JoinPolicy, OrphanPolicy
        from hookbridge.core.config import JoinSettings

        join = JoinSettings(name="c", entity="customer", hook="customer", policy="inner", on_orphan="fail")

        assert join.policy is JoinPolicy.INNER
        assert join.on_orphan is OrphanPolicy.FAIL

    def test_duplicate_event_columns_rejected(self) -> None:
        from hookbridge.core.config import BridgeSettings, EventSettings

        with pytest.raises(ValidationError, match="duplicate event columns"):
            BridgeSettings(
                peripheral="orders",
                primary="order",
                events=[
                    EventSettings(event_type="due", column="due_date"),
                    EventSettings(event_type="late", column="due_date"),
                ],
            )

    def test_join_may_not_shadow_primary(self) -> None:
        from hookbridge.core.config import BridgeSettings, JoinSettings

        with pytest.raises(ValidationError, match="shadows the primary"):
            BridgeSettings(
                peripheral="orders",
                primary="order",
                joins=[JoinSettings(name="order", entity="order", hook="parent")],
            )


class TestHookbridgeSettings:
    """Cross-reference validation."""

    def test_valid(self) -> None:
        from tests.fixtures.factories import orders_settings

        settings = orders_settings()

        assert [e.name for e in settings.entities] == ["customer", "region", "order"]
        assert [b.peripheral for b in settings.bridges] == ["orders"]

    def test_needs_an_entity(self) -> None:
        from hookbridge.core.config import HookbridgeSettings

        with pytest.raises(ValidationError):
            HookbridgeSettings(entities=[])

    def test_unknown_primary(self) -> None:
        from hookbridge.core.config import BridgeSettings, HookbridgeSettings
        from tests.fixtures.factories import customer_entity

        with pytest.raises(ValidationError, match="unknown primary entity"):
            HookbridgeSettings(
                entities=[customer_entity()],
                bridges=[BridgeSettings(peripheral="orders", primary="order")],
            )

    def test_unknown_join_entity(self) -> None:
        from hookbridge.core.config import BridgeSettings, HookbridgeSettings, JoinSettings
        from tests.fixtures.factories import order_entity

        with pytest.raises(ValidationError, match="targets unknown entity 'customer'"):
            HookbridgeSettings(
                entities=[order_entity()],
                bridges=[
                    BridgeSettings(
                        peripheral="orders",
                        primary="order",
                        joins=[JoinSettings(name="customer", entity="customer", hook="customer")],
                    )
                ],
            )

    def test_undeclared_hook(self) -> None:
        from hookbridge.core.config import BridgeSettings, HookbridgeSettings, JoinSettings
        from tests.fixtures.factories import customer_entity, order_entity

        with pytest.raises(ValidationError, match="does not declare"):
            HookbridgeSettings(
                entities=[customer_entity(), order_entity()],
                bridges=[
                    BridgeSettings(
                        peripheral="orders",
                        primary="order",
                        joins=[JoinSettings(name="customer", entity="customer", hook="buyer")],
                    )
                ],
            )

    def test_concept_mismatch(self) -> None:
        """A customer hook can never match region keys, so the join is rejected."""
        from hookbridge.core.config import BridgeSettings, HookbridgeSettings, JoinSettings
        from tests.fixtures.factories import order_entity, region_entity

        with pytest.raises(ValidationError, match="does not match entity 'region'"):
            HookbridgeSettings(
                entities=[order_entity(), region_entity()],
                bridges=[
                    BridgeSettings(
                        peripheral="orders",
                        primary="order",
                        joins=[JoinSettings(name="customer", entity="region", hook="customer")],
                    )
                ],
            )

    def test_via_reads_hook_from_upstream_entity(self) -> None:
        from hookbridge.core.config import BridgeSettings, HookbridgeSettings, JoinSettings
        from tests.fixtures.factories import customer_entity, order_entity, region_entity

        settings = HookbridgeSettings(
            entities=[customer_entity(), region_entity(), order_entity()],
            bridges=[
                BridgeSettings(
                    peripheral="orders",
                    primary="order",
                    joins=[
                        JoinSettings(name="region", entity="region", hook="region", via="customer"),
                        JoinSettings(name="customer", entity="customer", hook="customer"),
                    ],
                )
            ],
        )
        assert len(settings.bridges[0].joins) == 2

    def test_join_cycle_rejected(self) -> None:
        from hookbridge.core.config import BridgeSettings, HookbridgeSettings, JoinSettings
        from tests.fixtures.factories import customer_entity, order_entity

        with pytest.raises(ValidationError, match="cycle"):
            HookbridgeSettings(
                entities=[customer_entity(), order_entity()],
                bridges=[
                    BridgeSettings(
                        peripheral="orders",
                        primary="order",
                        joins=[
                            JoinSettings(name="a", entity="customer", hook="customer", via="b"),
                            JoinSettings(name="b", entity="customer", hook="customer", via="a"),
                        ],
                    )
                ],
            )

    def test_join_name_reused_for_another_entity_rejected(self) -> None:
        """Two bridges may not fill one PIT hook column from different entities."""
        from hookbridge.core.config import (
            BridgeSettings,
            EntitySettings,
            HookbridgeSettings,
            HookSettings,
            JoinSettings,
        )
        from tests.fixtures.factories import customer_entity

        entities = [
            customer_entity(),
            EntitySettings(name="supplier", concept="erp.supplier.id", key_column="supplier_id"),
            EntitySettings(
                name="order",
                concept="crm.order.id",
                key_column="order_id",
                hooks=[HookSettings(name="party", concept="crm.customer.id", column="customer_id")],
            ),
            EntitySettings(
                name="invoice",
                concept="erp.invoice.id",
                key_column="invoice_id",
                hooks=[HookSettings(name="party", concept="erp.supplier.id", column="supplier_id")],
            ),
        ]
        bridges = [
            BridgeSettings(
                peripheral="orders",
                primary="order",
                joins=[JoinSettings(name="party", entity="customer", hook="party")],
            ),
            BridgeSettings(
                peripheral="invoices",
                primary="invoice",
                joins=[JoinSettings(name="party", entity="supplier", hook="party")],
            ),
        ]

        with pytest.raises(ValidationError, match="'_pit_hook__party' refers to entity 'customer'"):
            HookbridgeSettings(entities=entities, bridges=bridges)

    def test_join_name_matching_another_primary(self) -> None:
        """A join named after an entity may share its column with a bridge on that entity."""
        from hookbridge.core.config import BridgeSettings, HookbridgeSettings, JoinSettings
        from tests.fixtures.factories import customer_entity, order_entity, orders_bridge, region_entity

        entities = [customer_entity(), region_entity(), order_entity()]
        settings = HookbridgeSettings(
            entities=entities,
            bridges=[orders_bridge(), BridgeSettings(peripheral="customers", primary="customer")],
        )
        assert [b.peripheral for b in settings.bridges] == ["orders", "customers"]

        with pytest.raises(ValidationError, match="'_pit_hook__order' refers to entity 'order'"):
            HookbridgeSettings(
                entities=entities,
                bridges=[
                    orders_bridge(),
                    BridgeSettings(
                        peripheral="customers",
                        primary="customer",
                        joins=[JoinSettings(name="order", entity="region", hook="region")],
                    ),
                ],
            )

    def test_duplicate_entities_rejected(self) -> None:
        from hookbridge.core.config import HookbridgeSettings
        from tests.fixtures.factories import customer_entity

        with pytest.raises(ValidationError, match="duplicate entity names"):
            HookbridgeSettings(entities=[customer_entity(), customer_entity()])

    def test_logging_level_normalized(self) -> None:
        from hookbridge.core.config import LoggingSettings

        assert LoggingSettings(level="debug").level == "DEBUG"
        with pytest.raises(ValidationError):
            LoggingSettings(level="chatty")


class TestLoadSettings:
    """Loading from YAML through Dynaconf."""

    def test_load_from_yaml(self, tmp_path: Path) -> None:
        from hookbridge.core.config import load_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text(SETTINGS_YAML)

        settings = load_settings(config_file)

        assert [e.name for e in settings.entities] == ["customer", "order"]
        assert settings.bridges[0].events[0].event_type == "due"
        assert settings.logging.level == "INFO"

    def test_relative_source_resolved_against_settings_dir(self, tmp_path: Path) -> None:
        from hookbridge.core.config import load_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text(SETTINGS_YAML)

        settings = load_settings(config_file)

        assert settings.entities[1].source == tmp_path / "raw" / "orders.csv"
        assert settings.entities[0].source is None

    def test_load_with_env_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        from hookbridge.core.config import load_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text(SETTINGS_YAML)
        # Environment variable should override YAML
        monkeypatch.setenv("HOOKBRIDGE_LOGGING__LEVEL", "DEBUG")

        settings = load_settings(config_file)
        assert settings.logging.level == "DEBUG"

    def test_env_var_expansion(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        from hookbridge.core.config import load_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text(SETTINGS_YAML.replace("raw/orders.csv", "${ORDERS_DIR}/orders.csv"))
        monkeypatch.setenv("ORDERS_DIR", str(tmp_path / "landing"))

        settings = load_settings(config_file)
        assert settings.entities[1].source == tmp_path / "landing" / "orders.csv"

    def test_env_var_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        from hookbridge.core.config import load_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text(SETTINGS_YAML.replace("level: info", "level: ${HB_TEST_LEVEL:-warning}"))
        monkeypatch.delenv("HB_TEST_LEVEL", raising=False)

        settings = load_settings(config_file)
        assert settings.logging.level == "WARNING"

    def test_missing_file(self, tmp_path: Path) -> None:
        from hookbridge.core.config import load_settings

        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "absent.yaml")

    def test_load_validates_schema(self, tmp_path: Path) -> None:
        from hookbridge.core.config import load_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text(SETTINGS_YAML.replace("concept: crm.order.id", "concept: epoch.date"))

        with pytest.raises(ValidationError):
            load_settings(config_file)
