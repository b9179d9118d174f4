import math

import pytest

from virtualwindow.models import geometry_index as geometry_module
from virtualwindow.models.geometry_config import (Computed, Fixed, GeometryConfig,
                                                  InvalidConfig, OutOfRange, PerIndex)
from virtualwindow.models.geometry_index import GeometryIndex


def _fixed_index(count=1000, size=50, **kwargs):
    return GeometryIndex(GeometryConfig(item_count=count, sizing=Fixed(size),
                                        estimated_size=size, **kwargs))


def _contribution(entry):
    return entry.size + entry.expand_size


def test_scenario_fixed_list_window_and_total():
    index = _fixed_index()

    visible = index.visible_range(500, 0, 3)

    assert (visible.start, visible.stop) == (0, 12)
    assert index.total_size() == 50000


def test_visible_range_mid_list_expands_both_edges():
    index = _fixed_index()

    visible = index.visible_range(500, 1000, 3)

    # Items 20..29 are on screen.
    assert (visible.start, visible.stop) == (17, 32)


def test_visible_range_partial_item_counts_as_visible():
    index = _fixed_index()

    visible = index.visible_range(100, 25, 0)

    assert (visible.start, visible.stop) == (0, 2)


def test_visible_range_clamps_overscan_at_end():
    index = _fixed_index(count=20)

    visible = index.visible_range(500, 600, 5)

    assert visible.stop == 19
    assert visible.start == 7


def test_visible_range_past_content_keeps_last_item():
    index = _fixed_index(count=10)

    visible = index.visible_range(100, 10_000, 0)

    assert (visible.start, visible.stop) == (9, 9)


def test_empty_list_and_zero_viewport_yield_empty_range():
    empty = _fixed_index(count=0)
    assert empty.total_size() == 0
    assert empty.visible_range(500, 0, 3).empty

    index = _fixed_index()
    assert index.visible_range(0, 0, 3).empty
    assert index.visible_range(-10, 0, 3).empty
    assert index.visible_range(math.nan, 0, 3).empty


def test_negative_scroll_offset_starts_at_zero():
    index = _fixed_index()

    visible = index.visible_range(120, -300, 0)

    assert (visible.start, visible.stop) == (0, 2)


def test_offsets_are_monotonic_with_expanded_items():
    sizes = [10 + (i * 13) % 40 for i in range(200)]
    index = GeometryIndex(GeometryConfig(
        item_count=200,
        sizing=PerIndex(sizes),
        expand_sizing=Computed(lambda i: 5 + i % 7),
        expanded={3, 50, 199},
        estimated_size=25,
    ))

    for i in range(199):
        current = index.size_and_position_for(i)
        following = index.size_and_position_for(i + 1)
        assert following.offset == current.offset + _contribution(current)
        assert current.expand_offset == current.offset + current.size

    assert index.size_and_position_for(0).offset == 0
    assert index.size_and_position_for(3).expand_size == 5 + 3 % 7
    assert index.size_and_position_for(4).expand_size == 0


def test_lazy_total_matches_full_materialization_for_fixed_sizes():
    index = _fixed_index(count=5000, size=37, expand_sizing=Fixed(11),
                         expanded={10, 2500, 4999}, estimated_expand_size=11)
    index.size_and_position_for(100)
    lazy_total = index.total_size()

    index.size_and_position_for(4999)
    full_total = index.total_size()
    summed = sum(_contribution(index.size_and_position_for(i)) for i in range(5000))

    assert lazy_total == full_total == summed == 5000 * 37 + 3 * 11


def test_total_size_uses_estimate_for_unmeasured_tail():
    index = GeometryIndex(GeometryConfig(item_count=100, sizing=Computed(lambda i: 10),
                                         estimated_size=40))

    assert index.total_size() == 4000
    index.size_and_position_for(9)
    assert index.total_size() == 10 * 10 + 90 * 40


def test_total_size_does_not_materialize():
    index = _fixed_index(count=10_000_000)

    assert index.total_size() == 500_000_000
    assert index.frontier == -1


def test_per_index_shorter_than_count_falls_back_to_estimate():
    index = GeometryIndex(GeometryConfig(item_count=5, sizing=PerIndex([10, 20]),
                                         estimated_size=33))

    assert index.size_and_position_for(1).size == 20
    assert index.size_and_position_for(2).size == 33
    assert index.size_and_position_for(4).offset == 10 + 20 + 33 + 33


def test_out_of_range_is_raised_not_clamped():
    index = _fixed_index(count=10)

    with pytest.raises(OutOfRange):
        index.size_and_position_for(10)
    with pytest.raises(OutOfRange):
        index.size_and_position_for(-1)
    with pytest.raises(IndexError):
        _fixed_index(count=0).size_and_position_for(0)


def test_irregular_computed_sizes_are_coerced_to_zero(monkeypatch):
    warnings = []
    monkeypatch.setattr(geometry_module, "log_flow",
                        lambda component, message, **kwargs: warnings.append((component, kwargs.get("level"))))

    def size_for(i):
        if i == 1:
            return -5
        if i == 2:
            return math.nan
        if i == 3:
            raise RuntimeError("bad measure")
        if i == 4:
            return "wide"
        return 10

    index = GeometryIndex(GeometryConfig(item_count=6, sizing=Computed(size_for)))

    assert [index.size_and_position_for(i).size for i in range(6)] == [10, 0, 0, 0, 0, 10]
    assert index.size_and_position_for(5).offset == 10
    assert len(warnings) == 4
    assert all(level == "WARN" for _, level in warnings)


@pytest.mark.parametrize("size", [-5, math.nan, math.inf])
def test_unusable_fixed_size_totals_zero_before_and_after_materialization(monkeypatch, size):
    monkeypatch.setattr(geometry_module, "log_flow", lambda *args, **kwargs: None)
    index = GeometryIndex(GeometryConfig(item_count=10, sizing=Fixed(size), estimated_size=50))

    assert index.total_size() == 0
    index.size_and_position_for(9)
    assert index.total_size() == 0


def test_invalidate_from_is_idempotent():
    calls = []

    def size_for(i):
        calls.append(i)
        return 10 + i % 3

    index = GeometryIndex(GeometryConfig(item_count=100, sizing=Computed(size_for)))
    before = [index.size_and_position_for(i) for i in range(60)]

    index.invalidate_from(40)
    assert index.frontier == 39
    after = [index.size_and_position_for(i) for i in range(40)]

    assert after == before[:40]
    assert calls.count(39) == 1
    assert index.size_and_position_for(59) == before[59]


def test_invalidate_from_zero_or_negative_resets_everything():
    index = _fixed_index()
    index.size_and_position_for(20)

    index.invalidate_from(-3)

    assert index.frontier == -1
    assert index.total_size() == 50000


def test_visible_range_uses_cached_prefix_without_growing_frontier():
    index = _fixed_index()
    index.size_and_position_for(500)

    visible = index.visible_range(200, 5000, 0)

    assert (visible.start, visible.stop) == (100, 103)
    assert index.frontier == 500


def test_visible_range_with_overscan_is_superset():
    index = GeometryIndex(GeometryConfig(item_count=300, sizing=Computed(lambda i: 20 + i % 9)))

    for offset in (0, 777, 3000, 6000):
        narrow = index.visible_range(400, offset, 1)
        wide = index.visible_range(400, offset, 6)
        assert wide.start <= narrow.start
        assert wide.stop >= narrow.stop


def test_expand_toggle_shifts_only_trailing_offsets():
    index = _fixed_index(expand_sizing=Fixed(80), estimated_expand_size=80)
    original_offset_6 = index.size_and_position_for(6).offset
    original_total = index.total_size()

    config = index.config
    index.update_config(GeometryConfig(
        item_count=config.item_count, sizing=config.sizing, expand_sizing=config.expand_sizing,
        expanded={5}, estimated_size=config.estimated_size,
        estimated_expand_size=config.estimated_expand_size,
    ))

    assert index.frontier == 4
    assert index.total_size() == original_total + 80
    assert index.size_and_position_for(6).offset == original_offset_6 + 80
    assert index.size_and_position_for(5).expand_offset == 300

    index.update_config(GeometryConfig(
        item_count=config.item_count, sizing=config.sizing, expand_sizing=config.expand_sizing,
        expanded=set(), estimated_size=config.estimated_size,
        estimated_expand_size=config.estimated_expand_size,
    ))

    assert index.size_and_position_for(6).offset == original_offset_6
    assert index.total_size() == original_total


def test_update_config_with_other_changes_resets_frontier():
    index = _fixed_index()
    index.size_and_position_for(100)

    index.update_config(GeometryConfig(item_count=1000, sizing=Fixed(40), estimated_size=40))

    assert index.frontier == -1
    assert index.size_and_position_for(10).offset == 400


def test_invalid_config_keeps_previous_config():
    index = _fixed_index()
    previous = index.config

    with pytest.raises(InvalidConfig):
        index.update_config(GeometryConfig(item_count=-1))
    with pytest.raises(InvalidConfig):
        index.update_config(GeometryConfig(item_count=10, estimated_size=0))
    with pytest.raises(InvalidConfig):
        index.update_config(GeometryConfig(item_count=10, sizing=50))
    with pytest.raises(InvalidConfig):
        index.update_config(GeometryConfig(item_count=10, expanded={"3"}))

    assert index.config is previous
    assert index.total_size() == 50000
