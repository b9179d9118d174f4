import logging
import os
import sys
import traceback
import warnings

from PySide6.QtCore import qInstallMessageHandler
from PySide6.QtWidgets import QApplication, QMessageBox

from virtualwindow.models.geometry_config import Computed, Fixed, GeometryConfig
from virtualwindow.utils.settings import DEFAULT_SETTINGS, settings
from virtualwindow.widgets.virtual_list_view import VirtualListView

DEMO_ITEM_COUNT = 1_000_000


# Install a message handler to suppress QPainter warnings at Qt level
def qt_message_handler(msg_type, msg_context, msg_string):
    """Suppress Qt's QPainter debug messages."""
    if "QPainter" in msg_string or "Paint device returned engine" in msg_string:
        return


def suppress_warnings():
    """Suppress all warnings when not in a development environment."""
    environment = os.getenv('VIRTUALWINDOW_ENVIRONMENT')
    if environment == 'development':
        print('Running in development environment.')
        settings.setValue('minimal_trace_logs', False)
        return
    logging.basicConfig(level=logging.ERROR)
    warnings.simplefilter('ignore')


def _demo_row_height(index: int) -> int:
    # Deterministic variation: every tenth row is a tall header.
    return 72 if index % 10 == 0 else 28 + (index * 7) % 20


def run_demo():
    qInstallMessageHandler(qt_message_handler)
    app = QApplication([])
    app.setApplicationName('VirtualWindow')
    app.setApplicationDisplayName('VirtualWindow')
    app.setStyle('Fusion')

    try:
        estimated = float(settings.value('estimated_item_size',
                                         DEFAULT_SETTINGS['estimated_item_size'], type=float))
    except Exception:
        estimated = float(DEFAULT_SETTINGS['estimated_item_size'])
    config = GeometryConfig(
        item_count=DEMO_ITEM_COUNT,
        sizing=Computed(_demo_row_height),
        expand_sizing=Fixed(120),
        estimated_size=estimated if estimated > 0 else 50.0,
        estimated_expand_size=120.0,
    )
    view = VirtualListView(config=config)
    view.setWindowTitle(f'VirtualWindow ({DEMO_ITEM_COUNT:,} rows)')
    view.set_sticky_indices([0])
    view.item_clicked.connect(view.toggle_expanded)
    view.window_changed.connect(
        lambda start, stop: view.setWindowTitle(
            f'VirtualWindow ({DEMO_ITEM_COUNT:,} rows) - mounted {max(0, stop - start + 1)}'
        )
    )
    view.resize(480, 720)
    view.show()
    app.aboutToQuit.connect(view.teardown)
    return int(app.exec())


if __name__ == '__main__':
    suppress_warnings()
    try:
        sys.exit(run_demo())
    except Exception as exception:
        print(f"[CRASH] {exception}")
        error_message_box = QMessageBox()
        error_message_box.setWindowTitle('Error')
        error_message_box.setIcon(QMessageBox.Icon.Critical)
        error_message_box.setText(str(exception))
        error_message_box.setDetailedText(traceback.format_exc())
        error_message_box.exec()
        sys.exit(1)
