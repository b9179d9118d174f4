from PySide6.QtCore import QSettings, Signal

# Defaults for settings that are accessed from multiple places.
DEFAULT_SETTINGS = {
    'virtual_overscan': 3,  # Extra rows mounted on each side of the visible window
    'scroll_debounce_ms': 16,  # One frame at 60 Hz
    'scroll_end_ms': 150,  # Inactivity before the widened overscan is dropped
    'scroll_velocity_threshold': 2.0,  # Units per ms at which overscan doubles
    'max_dynamic_overscan': 100,
    'estimated_item_size': 50,
    'minimal_trace_logs': True,  # Only warnings and scroll state changes are printed
}


class Settings(QSettings):
    # Signal that shows that the setting with the given string was changes
    change = Signal(str, object, name='settingsChanged')

    def __init__(self):
        super().__init__('virtualwindow', 'virtualwindow')

    def setValue(self, key, value):
        super().setValue(key, value)
        self.change.emit(key, value)

# Common shared instance to ensure the Signal is also shared
settings = Settings()


def get_int_setting(key: str, minimum: int, maximum: int) -> int:
    default = DEFAULT_SETTINGS[key]
    try:
        value = int(settings.value(key, default, type=int))
    except Exception:
        value = default
    return max(minimum, min(value, maximum))


def get_float_setting(key: str, minimum: float, maximum: float) -> float:
    default = DEFAULT_SETTINGS[key]
    try:
        value = float(settings.value(key, default, type=float))
    except Exception:
        value = default
    if value != value:
        value = default
    return max(minimum, min(value, maximum))
