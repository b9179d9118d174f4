import math
import time

from PySide6.QtCore import QRect, Qt, Signal
from PySide6.QtGui import QColor, QPainter
from PySide6.QtWidgets import QAbstractScrollArea

from virtualwindow.models.geometry_config import EMPTY_RANGE, GeometryConfig
from virtualwindow.utils.flow_log import log_flow
from virtualwindow.utils.settings import DEFAULT_SETTINGS, settings
from virtualwindow.widgets.scroll_coordinator import ScrollCoordinator, ScrollTuning
from virtualwindow.widgets.virtual_list_engine import VirtualListEngine
from virtualwindow.widgets.window_planner_service import WindowPlannerService


class VirtualListView(QAbstractScrollArea):
    """
    Scroll area that mounts only the rows of the current window.

    The engine owns geometry; this widget only reads scroll bar / viewport
    numbers, feeds them to the coordinator and paints the planned items.
    """

    item_clicked = Signal(int)
    window_changed = Signal(int, int)  # (start, stop), stop < start when empty

    def __init__(self, parent=None, config: GeometryConfig | None = None, *,
                 tuning: ScrollTuning | None = None, item_painter=None):
        super().__init__(parent)
        self.engine = VirtualListEngine(config)
        self.planner = WindowPlannerService(self.engine.geometry)
        self.coordinator = ScrollCoordinator(
            self.engine.geometry,
            self,
            tuning=tuning,
            viewport_size=self.viewport().height(),
            live_offset=lambda: self.verticalScrollBar().value(),
        )
        self.item_painter = item_painter
        self._sticky_indices: tuple[int, ...] = ()
        self._placed_items = []
        self._visible_range = EMPTY_RANGE

        self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.verticalScrollBar().valueChanged.connect(self._on_scroll_value_changed)
        self.coordinator.visible_range_changed.connect(self._on_visible_range_changed)
        self.coordinator.offset_settled.connect(self._on_offset_settled)
        settings.change.connect(self._on_setting_changed)
        self.coordinator.request_requery()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_config(self, config: GeometryConfig):
        self.engine.configure(config)
        self.coordinator.request_requery()

    def set_item_count(self, item_count: int):
        self.engine.set_item_count(item_count)
        self.coordinator.request_requery()

    def set_expanded(self, index: int, expanded: bool = True):
        self.engine.set_expanded(index, expanded)
        self.coordinator.request_requery()

    def toggle_expanded(self, index: int) -> bool:
        expanded = self.engine.toggle_expanded(index)
        self.coordinator.request_requery()
        return expanded

    def invalidate_from(self, index: int):
        """Call after sizes at or past `index` changed without a config change."""
        self.engine.invalidate_from(index)
        self.coordinator.request_requery()

    def _on_setting_changed(self, key: str, value):
        if key in DEFAULT_SETTINGS and key != "estimated_item_size":
            self.coordinator.set_tuning(ScrollTuning.from_settings())

    def set_sticky_indices(self, indices):
        self._sticky_indices = tuple(indices)
        self._replan()

    def visible_range(self):
        return self._visible_range

    # ------------------------------------------------------------------
    # Scrolling
    # ------------------------------------------------------------------

    def scroll_to_index(self, index: int, align='auto'):
        """Scroll so `index` satisfies `align`. Only the lower bound is clamped here."""
        scroll_bar = self.verticalScrollBar()
        offset = self.engine.offset_for_index(
            index, align, self.viewport().height(), scroll_bar.value()
        )
        target = max(0, int(round(offset)))
        scroll_bar.setValue(target)
        return target

    def _on_scroll_value_changed(self, value: int):
        self.coordinator.on_scroll_sample(value, time.monotonic() * 1000.0)

    def scrollContentsBy(self, dx, dy):
        # Rows are painted from geometry; never blit stale pixels.
        self.viewport().update()

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self.coordinator.on_resize(self.viewport().height())

    def closeEvent(self, event):
        self.teardown()
        super().closeEvent(event)

    def teardown(self):
        self.coordinator.shutdown()

    # ------------------------------------------------------------------
    # Coordinator callbacks
    # ------------------------------------------------------------------

    def _on_visible_range_changed(self, visible_range, total_size: float):
        self._visible_range = visible_range
        scroll_bar = self.verticalScrollBar()
        viewport_height = max(0, self.viewport().height())
        scroll_max = max(0, int(math.ceil(total_size)) - viewport_height)
        if scroll_bar.maximum() != scroll_max:
            scroll_bar.setRange(0, scroll_max)
        scroll_bar.setPageStep(max(1, viewport_height))
        scroll_bar.setSingleStep(max(1, int(self.engine.config.sizing.estimate(self.engine.config.estimated_size))))
        if visible_range.empty:
            self.window_changed.emit(0, -1)
        else:
            self.window_changed.emit(visible_range.start, visible_range.stop)

    def _on_offset_settled(self, offset: float):
        self._replan(offset)

    def _replan(self, offset: float | None = None):
        if offset is None:
            offset = self.verticalScrollBar().value()
        self._placed_items = self.planner.plan(self._visible_range, offset, self._sticky_indices)
        self.viewport().update()

    # ------------------------------------------------------------------
    # Painting / input
    # ------------------------------------------------------------------

    def paintEvent(self, event):
        painter = QPainter(self.viewport())
        try:
            scroll_value = self.verticalScrollBar().value()
            width = self.viewport().width()
            # Sticky rows last so they cover whatever scrolls beneath them.
            ordered = sorted(self._placed_items, key=lambda item: item.sticky)
            for item in ordered:
                top = int(item.render_offset - scroll_value)
                rect = QRect(0, top, width, int(math.ceil(item.entry.size)))
                pane_rect = QRect(0, top + rect.height(), width, int(math.ceil(item.entry.expand_size)))
                if self.item_painter is not None:
                    try:
                        self.item_painter(painter, rect, pane_rect, item)
                    except Exception as e:
                        log_flow("PAINT", f"Item painter failed for index {item.index}: {e!r}",
                                 level="WARN", throttle_key="paint_item", every_s=1.0)
                else:
                    self._paint_default(painter, rect, pane_rect, item)
        finally:
            painter.end()

    def _paint_default(self, painter, rect, pane_rect, item):
        base = QColor(245, 245, 245) if item.index % 2 else QColor(255, 255, 255)
        if item.sticky:
            base = QColor(220, 230, 245)
        painter.fillRect(rect, base)
        painter.setPen(QColor(40, 40, 40))
        painter.drawText(rect.adjusted(8, 0, -8, 0),
                         Qt.AlignmentFlag.AlignVCenter | Qt.AlignmentFlag.AlignLeft,
                         f"Item {item.index}")
        if pane_rect.height() > 0:
            painter.fillRect(pane_rect, QColor(232, 240, 232))
            painter.drawText(pane_rect.adjusted(24, 0, -8, 0),
                             Qt.AlignmentFlag.AlignVCenter | Qt.AlignmentFlag.AlignLeft,
                             f"Details for item {item.index}")

    def index_at(self, y: int) -> int:
        """Index of the planned item under viewport coordinate `y`, or -1."""
        position = self.verticalScrollBar().value() + y
        # Sticky items are drawn on top, so they win hit tests.
        for item in sorted(self._placed_items, key=lambda placed: not placed.sticky):
            top = item.render_offset
            bottom = top + item.entry.size + item.entry.expand_size
            if top <= position < bottom:
                return item.index
        return -1

    def mousePressEvent(self, event):
        index = self.index_at(int(event.position().y()))
        if index >= 0:
            self.item_clicked.emit(index)
        super().mousePressEvent(event)
