from dataclasses import replace

from virtualwindow.models.geometry_config import (GeometryConfig, GeometryEntry,
                                                  InvalidConfig, VisibleRange)
from virtualwindow.models.geometry_index import GeometryIndex
from virtualwindow.utils.flow_log import log_flow
from virtualwindow.widgets.alignment_solver import AlignmentSolver


class VirtualListEngine:
    """Host-facing windowing surface: geometry queries plus alignment."""

    def __init__(self, config: GeometryConfig | None = None):
        self.geometry = GeometryIndex(config)
        self.alignment = AlignmentSolver(self.geometry)

    @property
    def config(self) -> GeometryConfig:
        return self.geometry.config

    def configure(self, config: GeometryConfig):
        try:
            self.geometry.update_config(config)
        except InvalidConfig as e:
            log_flow("GEOMETRY", f"Rejected config: {e}", level="WARN")
            raise

    def total_size(self) -> float:
        return self.geometry.total_size()

    def visible_range(self, viewport_size: float, offset: float, overscan: int = 0) -> VisibleRange:
        return self.geometry.visible_range(viewport_size, offset, overscan)

    def placement_for(self, index: int) -> GeometryEntry:
        return self.geometry.size_and_position_for(index)

    def offset_for_index(self, index, align, viewport_size: float, current_offset: float) -> float:
        return self.alignment.offset_for_index(index, align, viewport_size, current_offset)

    def invalidate_from(self, index: int):
        self.geometry.invalidate_from(index)

    # Patches -----------------------------------------------------------

    def set_item_count(self, item_count: int):
        self.configure(replace(self.config, item_count=item_count))

    def set_expanded(self, index: int, expanded: bool = True):
        current = self.config.expanded
        updated = current | {index} if expanded else current - {index}
        if updated != current:
            self.configure(replace(self.config, expanded=frozenset(updated)))

    def toggle_expanded(self, index: int) -> bool:
        """Flip the expand state of `index`; returns the new state."""
        expanded = index not in self.config.expanded
        self.set_expanded(index, expanded)
        return expanded
