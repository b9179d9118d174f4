import pytest

from virtualwindow.models.geometry_config import Fixed, GeometryConfig, InvalidConfig, OutOfRange
from virtualwindow.widgets import virtual_list_engine as engine_module
from virtualwindow.widgets.virtual_list_engine import VirtualListEngine


def _engine():
    return VirtualListEngine(GeometryConfig(
        item_count=1000, sizing=Fixed(50), expand_sizing=Fixed(80),
        estimated_size=50, estimated_expand_size=80,
    ))


def test_engine_exposes_core_queries():
    engine = _engine()

    visible = engine.visible_range(500, 0, 3)

    assert (visible.start, visible.stop) == (0, 12)
    assert engine.total_size() == 50000
    assert engine.offset_for_index(999, 'end', 500, 0) == 49500
    assert engine.placement_for(3).offset == 150
    with pytest.raises(OutOfRange):
        engine.placement_for(1000)


def test_toggle_expanded_adds_and_restores_pane():
    engine = _engine()
    offset_6 = engine.placement_for(6).offset

    assert engine.toggle_expanded(5) is True
    assert engine.total_size() == 50080
    assert engine.placement_for(6).offset == offset_6 + 80
    assert engine.placement_for(5).expand_size == 80

    assert engine.toggle_expanded(5) is False
    assert engine.total_size() == 50000
    assert engine.placement_for(6).offset == offset_6


def test_set_expanded_is_noop_when_state_matches():
    engine = _engine()
    engine.placement_for(100)

    engine.set_expanded(5, False)

    assert engine.geometry.frontier == 100


def test_set_item_count_resizes_list():
    engine = _engine()

    engine.set_item_count(10)

    assert engine.total_size() == 500
    assert engine.visible_range(1000, 0, 0).stop == 9


def test_rejected_config_is_logged_and_previous_kept(monkeypatch):
    messages = []
    monkeypatch.setattr(engine_module, "log_flow",
                        lambda component, message, **kwargs: messages.append((component, kwargs.get("level"))))
    engine = _engine()

    with pytest.raises(InvalidConfig):
        engine.set_item_count(-4)

    assert messages == [("GEOMETRY", "WARN")]
    assert engine.config.item_count == 1000


def test_invalidate_from_forwards_to_geometry():
    engine = _engine()
    engine.placement_for(50)

    engine.invalidate_from(20)

    assert engine.geometry.frontier == 19
