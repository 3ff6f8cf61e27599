# tests/engine/test_modes.py
"""Tests for the temporal read modes."""

from datetime import date, datetime

import pytest

from tests.fixtures.factories import at


def _bridge():
    """Two versions of one order; each carries one event."""
    from hookbridge.contracts import Column, Relation
    from hookbridge.core.hooks import epoch_hook

    columns = (
        Column("_pit_hook__bridge", str),
        Column("_record__valid_from", datetime),
        Column("_record__valid_to", datetime),
        Column("_record__is_current", bool),
        Column("_hook__epoch__date", str),
    )
    rows = (
        {
            "_pit_hook__bridge": "v1",
            "_record__valid_from": at("MIN"),
            "_record__valid_to": at("2024-02-01"),
            "_record__is_current": False,
            # event inside the first version
            "_hook__epoch__date": epoch_hook(date(2024, 1, 15)),
        },
        {
            "_pit_hook__bridge": "v2",
            "_record__valid_from": at("2024-02-01"),
            "_record__valid_to": at("MAX"),
            "_record__is_current": True,
            # event before the second version began
            "_hook__epoch__date": epoch_hook(date(2024, 1, 20)),
        },
        {
            "_pit_hook__bridge": "v3",
            "_record__valid_from": at("2024-02-01"),
            "_record__valid_to": at("MAX"),
            "_record__is_current": True,
            "_hook__epoch__date": None,
        },
    )
    return Relation("orders", columns, rows)


def _pits(relation) -> list[str]:
    return [row["_pit_hook__bridge"] for row in relation.rows]


class TestAsOf:
    """Point-in-time reads over half-open intervals."""

    def test_before_boundary(self) -> None:
        from hookbridge.engine.modes import as_of

        assert _pits(as_of(_bridge(), at("2024-01-31T23:59:59"))) == ["v1"]

    def test_at_boundary_belongs_to_later_version(self) -> None:
        from hookbridge.engine.modes import as_of

        assert _pits(as_of(_bridge(), at("2024-02-01"))) == ["v2", "v3"]

    def test_accepts_iso_string(self) -> None:
        from hookbridge.engine.modes import as_of

        assert _pits(as_of(_bridge(), "2023-06-01T00:00:00+00:00")) == ["v1"]

    def test_keeps_schema(self) -> None:
        from hookbridge.engine.modes import as_of

        bridge = _bridge()
        assert as_of(bridge, at("2023-01-01")).columns == bridge.columns


class TestAsIs:
    def test_current_rows(self) -> None:
        from hookbridge.engine.modes import as_is

        assert _pits(as_is(_bridge())) == ["v2", "v3"]


class TestAsOfEvent:
    """Rows valid on their own event date."""

    def test_event_inside_interval(self) -> None:
        from hookbridge.engine.modes import as_of_event

        assert _pits(as_of_event(_bridge())) == ["v1"]

    def test_event_anchor(self) -> None:
        from hookbridge.engine.modes import event_anchor

        rows = _bridge().rows
        assert event_anchor(rows[0]) == at("2024-01-15")
        assert event_anchor(rows[2]) is None

    def test_missing_epoch_column(self) -> None:
        from hookbridge.contracts import Column, Relation
        from hookbridge.engine.modes import as_of_event

        relation = Relation(
            "orders",
            (Column("_record__valid_from", datetime), Column("_record__valid_to", datetime)),
        )
        with pytest.raises(ValueError, match="_hook__epoch__date"):
            as_of_event(relation)


class TestRead:
    """Dispatch by mode."""

    def test_dispatch(self) -> None:
        from hookbridge.contracts import TemporalMode
        from hookbridge.engine.modes import read

        bridge = _bridge()
        assert _pits(read(bridge, TemporalMode.AS_IS)) == ["v2", "v3"]
        assert _pits(read(bridge, TemporalMode.AS_OF, at("2023-01-01"))) == ["v1"]
        assert _pits(read(bridge, TemporalMode.AS_OF_EVENT)) == ["v1"]

    def test_mode_by_name(self) -> None:
        from hookbridge.engine.modes import read

        assert _pits(read(_bridge(), "as_is")) == ["v2", "v3"]

    def test_unknown_mode(self) -> None:
        from hookbridge.engine.modes import read

        with pytest.raises(ValueError):
            read(_bridge(), "as_was")

    def test_as_of_needs_instant(self) -> None:
        from hookbridge.contracts import TemporalMode
        from hookbridge.engine.modes import read

        with pytest.raises(ValueError, match="instant"):
            read(_bridge(), TemporalMode.AS_OF)
