from enum import Enum

from virtualwindow.models.geometry_index import GeometryIndex


class Align(str, Enum):
    AUTO = 'auto'
    START = 'start'
    CENTER = 'center'
    END = 'end'


class AlignmentSolver:
    """Resolves the scroll offset that brings an index into view."""

    def __init__(self, geometry: GeometryIndex):
        self._geometry = geometry

    def _clamp_index(self, index) -> int:
        try:
            index = int(index)
        except (TypeError, ValueError, OverflowError):
            index = 0
        return max(0, min(self._geometry.item_count - 1, index))

    def offset_for_index(self, index, align, viewport_size: float, current_offset: float) -> float:
        """
        Offset that satisfies `align` for `index`.

        The result is not clamped to the scrollable domain; callers clamp the
        lower bound to 0 when they execute the scroll.
        """
        if self._geometry.item_count <= 0:
            return 0.0
        align = Align(align)
        entry = self._geometry.size_and_position_for(self._clamp_index(index))
        offset, size = entry.offset, entry.size

        if align == Align.AUTO:
            if offset >= current_offset and offset + size <= current_offset + viewport_size:
                return current_offset
            align = Align.START if offset < current_offset else Align.END

        if align == Align.START:
            return offset
        if align == Align.END:
            return offset + size - viewport_size
        return offset - (viewport_size - size) / 2
