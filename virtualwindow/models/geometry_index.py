"""
Lazy geometry index for virtualized lists.

Maps item indices to offsets and sizes without materializing the whole list.
Entries are computed on demand from the current frontier forward and cached in
flat arrays until invalidated, so scrolling through N items costs O(1)
amortized per newly reached index and binary search inside the cached prefix.

Sizes past the frontier are extrapolated from the configured estimates, which
keeps `total_size()` cheap for very large item counts.
"""

import math
from bisect import bisect_left, bisect_right

from virtualwindow.models.geometry_config import (EMPTY_RANGE, GeometryConfig,
                                                  GeometryEntry, OutOfRange,
                                                  VisibleRange)
from virtualwindow.utils.flow_log import log_flow


class GeometryIndex:
    """Offsets/sizes for a list under fixed, per-index or computed sizing."""

    def __init__(self, config: GeometryConfig | None = None):
        self._config = (config or GeometryConfig()).validate()
        # Flat arrays indexed by item position. len(...) - 1 is the frontier.
        self._offsets: list[float] = []
        self._sizes: list[float] = []
        self._expand_sizes: list[float] = []
        self._ends: list[float] = []
        self._expanded_sorted: list[int] = []
        self._rebuild_expanded()

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------

    @property
    def config(self) -> GeometryConfig:
        return self._config

    @property
    def item_count(self) -> int:
        return self._config.item_count

    @property
    def frontier(self) -> int:
        """Highest materialized index, or -1 when nothing is cached."""
        return len(self._offsets) - 1

    def update_config(self, new_config: GeometryConfig):
        """Replace the config, narrowing invalidation for pure expand toggles."""
        new_config.validate()
        old_config = self._config
        if new_config == old_config:
            return
        if new_config.only_expanded_differs(old_config):
            toggled = old_config.expanded.symmetric_difference(new_config.expanded)
            first = min(toggled)
        else:
            first = 0
        self._config = new_config
        self._rebuild_expanded()
        self.invalidate_from(first)
        log_flow("GEOMETRY", f"Config updated: count={new_config.item_count} invalidated_from={first}")

    def invalidate_from(self, index: int):
        """Forget cached entries at or after `index`; 0 or less clears everything."""
        index = max(0, int(index))
        if index >= len(self._offsets):
            return
        del self._offsets[index:]
        del self._sizes[index:]
        del self._expand_sizes[index:]
        del self._ends[index:]

    def _rebuild_expanded(self):
        count = self._config.item_count
        self._expanded_sorted = sorted(
            i for i in self._config.expanded if 0 <= i < count
        )

    # ------------------------------------------------------------------
    # Materialization
    # ------------------------------------------------------------------

    def _coerce_size(self, rule, index: int, estimate: float, kind: str) -> float:
        try:
            value = rule.raw_size(index)
        except Exception as e:
            log_flow("GEOMETRY", f"{kind} size for index {index} raised {e!r}; using 0",
                     level="WARN", throttle_key=f"size_raise_{kind}", every_s=1.0)
            return 0.0
        if value is None:
            return float(estimate)
        try:
            value = float(value)
        except (TypeError, ValueError):
            value = math.nan
        if not math.isfinite(value) or value < 0:
            log_flow("GEOMETRY", f"{kind} size for index {index} is {value!r}; using 0",
                     level="WARN", throttle_key=f"size_invalid_{kind}", every_s=1.0)
            return 0.0
        return value

    def _materialize_to(self, index: int):
        config = self._config
        start = len(self._offsets)
        if index < start:
            return
        offset = self._ends[-1] if self._ends else 0.0
        for i in range(start, index + 1):
            size = self._coerce_size(config.sizing, i, config.estimated_size, "primary")
            if config.is_expanded(i):
                expand_size = self._coerce_size(
                    config.expand_sizing, i, config.estimated_expand_size, "expand"
                )
            else:
                expand_size = 0.0
            end = offset + size + expand_size
            self._offsets.append(offset)
            self._sizes.append(size)
            self._expand_sizes.append(expand_size)
            self._ends.append(end)
            offset = end

    def _entry(self, index: int) -> GeometryEntry:
        offset = self._offsets[index]
        size = self._sizes[index]
        return GeometryEntry(
            offset=offset,
            size=size,
            expand_offset=offset + size,
            expand_size=self._expand_sizes[index],
        )

    def size_and_position_for(self, index: int) -> GeometryEntry:
        if isinstance(index, bool) or not isinstance(index, int):
            raise OutOfRange(index, self.item_count)
        if index < 0 or index >= self.item_count:
            raise OutOfRange(index, self.item_count)
        self._materialize_to(index)
        return self._entry(index)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def total_size(self) -> float:
        count = self.item_count
        if count <= 0:
            return 0.0
        config = self._config
        materialized = len(self._offsets)
        known = self._ends[-1] if self._ends else 0.0
        tail = count - materialized
        if tail <= 0:
            return known
        tail_expanded = len(self._expanded_sorted) - bisect_left(self._expanded_sorted, materialized)
        return (
            known
            + tail * config.sizing.estimate(config.estimated_size)
            + tail_expanded * config.expand_sizing.estimate(config.estimated_expand_size)
        )

    def _first_index_ending_after(self, position: float) -> int:
        """First index whose extent ends past `position`, or item_count when none."""
        count = self.item_count
        if self._ends and self._ends[-1] > position:
            return bisect_right(self._ends, position)
        index = len(self._offsets)
        while index < count:
            self._materialize_to(index)
            if self._ends[index] > position:
                return index
            index += 1
        return count

    def _last_index_starting_before(self, position: float, floor: int) -> int:
        """Last index at or after `floor` whose offset is below `position`."""
        count = self.item_count
        self._materialize_to(floor)
        if self._ends[-1] >= position or len(self._offsets) >= count:
            last = bisect_left(self._offsets, position) - 1
            return max(floor, last)
        index = len(self._offsets)
        while index < count:
            self._materialize_to(index)
            if self._offsets[index] >= position:
                return max(floor, index - 1)
            index += 1
        return count - 1

    def visible_range(self, viewport_size: float, scroll_offset: float, overscan: int = 0) -> VisibleRange:
        count = self.item_count
        try:
            viewport_size = float(viewport_size)
            scroll_offset = float(scroll_offset)
        except (TypeError, ValueError):
            return EMPTY_RANGE
        if count <= 0 or not math.isfinite(viewport_size) or viewport_size <= 0:
            return EMPTY_RANGE
        if not math.isfinite(scroll_offset):
            scroll_offset = 0.0
        scroll_offset = max(0.0, scroll_offset)

        start = min(self._first_index_ending_after(scroll_offset), count - 1)
        stop = self._last_index_starting_before(scroll_offset + viewport_size, start)

        overscan = max(0, int(overscan or 0))
        return VisibleRange(
            start=max(0, start - overscan),
            stop=min(count - 1, stop + overscan),
        )
