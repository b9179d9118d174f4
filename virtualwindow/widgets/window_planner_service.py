from dataclasses import dataclass

from virtualwindow.models.geometry_config import GeometryEntry, VisibleRange
from virtualwindow.models.geometry_index import GeometryIndex
from virtualwindow.utils.flow_log import log_flow


@dataclass(frozen=True)
class PlacedItem:
    """One item the host should render, with its placement."""

    index: int
    entry: GeometryEntry
    render_offset: float
    sticky: bool = False


class WindowPlannerService:
    """Plans the concrete items to render for a visible range plus sticky indices."""

    def __init__(self, geometry: GeometryIndex):
        self._geometry = geometry

    def plan(self, visible_range: VisibleRange, scroll_offset: float = 0.0,
             sticky_indices=()) -> list[PlacedItem]:
        count = self._geometry.item_count
        placed: dict[int, PlacedItem] = {}

        for index in visible_range:
            if index >= count:
                break
            entry = self._geometry.size_and_position_for(index)
            placed[index] = PlacedItem(index=index, entry=entry, render_offset=entry.offset)

        for index in sticky_indices:
            if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < count:
                log_flow("PLANNER", f"Skipping sticky index {index!r} outside [0, {count})",
                         level="WARN", throttle_key="planner_sticky", every_s=1.0)
                continue
            entry = self._geometry.size_and_position_for(index)
            # Sticky items above the viewport stay pinned to its leading edge.
            render_offset = max(entry.offset, float(scroll_offset))
            placed[index] = PlacedItem(index=index, entry=entry, render_offset=render_offset, sticky=True)

        return [placed[index] for index in sorted(placed)]
