# accessreader/settings/reader_settings.py
import copy
import json
import logging
from pathlib import Path

from PySide6.QtCore import QObject, Signal

logger = logging.getLogger(__name__)

THEMES = ("light", "dark", "sepia", "high-contrast", "ink")
FONT_FAMILIES = ("sans", "serif", "mono", "system-ui")

MIN_FONT_SIZE = 12
MAX_FONT_SIZE = 64
FONT_SIZE_STEP = 2

DEFAULT_SETTINGS = {
    "font_size": 22,
    "line_height": 1.8,
    "letter_spacing": 0.02,
    "theme": "light",
    "font_family": "sans",
    "is_focus_mode": False,
    "is_loupe_active": False,
    "is_hover_zoom": True,
    "is_bionic_reading": False,
    "auto_scroll_speed": 0,
    "speech_voice_uri": "",
}

DEFAULT_CONFIG = {
    "reader_settings": dict(DEFAULT_SETTINGS),
    "piper_settings": {
        "path": "",
        "voice": "",
    },
    "vosk_settings": {
        "model": "",
    },
}


class SettingsError(ValueError):
    """Raised for unknown settings keys or values of the wrong type"""


def _coerce_setting(key, value):
    """Validate one setting value and return its normalised form"""
    if key not in DEFAULT_SETTINGS:
        raise SettingsError(f"Unknown setting: {key}")

    if key.startswith("is_"):
        if not isinstance(value, bool):
            raise SettingsError(f"{key} must be a boolean, got {value!r}")
        return value

    if key == "font_size":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise SettingsError(f"font_size must be a number, got {value!r}")
        return max(MIN_FONT_SIZE, min(MAX_FONT_SIZE, int(value)))

    if key == "auto_scroll_speed":
        if isinstance(value, bool) or not isinstance(value, int):
            raise SettingsError(f"auto_scroll_speed must be an integer, got {value!r}")
        return max(0, value)

    if key in ("line_height", "letter_spacing"):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise SettingsError(f"{key} must be a number, got {value!r}")
        return float(value)

    if key == "theme":
        if value not in THEMES:
            raise SettingsError(f"Unknown theme: {value!r}")
        return value

    if key == "font_family":
        if value not in FONT_FAMILIES:
            raise SettingsError(f"Unknown font family: {value!r}")
        return value

    # speech_voice_uri
    if not isinstance(value, str):
        raise SettingsError(f"{key} must be a string, got {value!r}")
    return value


class ReaderSettings(QObject):
    """
    The reader configuration record shared by every component.

    update() is the only way to change values. It validates and clamps the
    new values, emits settingsChanged with the keys that actually changed and
    hands the record to the store for saving.
    """

    settingsChanged = Signal(dict)

    def __init__(self, values=None, store=None, parent=None):
        super().__init__(parent)
        self.store = store
        self._values = dict(DEFAULT_SETTINGS)
        if values:
            for key, value in values.items():
                try:
                    self._values[key] = _coerce_setting(key, value)
                except SettingsError as e:
                    logger.warning("Ignoring stored setting: %s", e)

    def get(self, key):
        return self._values[key]

    def as_dict(self):
        return dict(self._values)

    def update(self, **changes):
        """
        Apply setting changes.

        Raises:
            SettingsError: if a key is unknown or a value has the wrong type.
                Nothing is applied in that case.
        """
        coerced = {key: _coerce_setting(key, value) for key, value in changes.items()}
        changed = {key: value for key, value in coerced.items() if self._values[key] != value}
        if not changed:
            return {}

        self._values.update(changed)
        logger.debug("Settings changed: %s", changed)
        if self.store is not None:
            self.store.save_reader_settings(self._values)
        self.settingsChanged.emit(changed)
        return changed

    def increase_font_size(self):
        return self.update(font_size=self._values["font_size"] + FONT_SIZE_STEP)

    def decrease_font_size(self):
        return self.update(font_size=self._values["font_size"] - FONT_SIZE_STEP)


class SettingsStore:
    """Loads and saves config.json in the application data directory"""

    def __init__(self, data_dir):
        self.data_dir = Path(data_dir)
        self.config_path = self.data_dir / "config.json"
        self.config = copy.deepcopy(DEFAULT_CONFIG)

    def load_config(self):
        """Load or create the configuration file"""
        self.data_dir.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    loaded = json.load(f)
                if not isinstance(loaded, dict):
                    raise ValueError("config root is not an object")
            except (OSError, ValueError) as e:
                # Reset config if corrupted
                logger.warning("Could not read %s, using defaults: %s", self.config_path, e)
                loaded = {}
        else:
            loaded = {}

        config = copy.deepcopy(DEFAULT_CONFIG)
        for section, defaults in config.items():
            stored = loaded.get(section)
            if isinstance(stored, dict):
                defaults.update(stored)
        # Keep sections owned by other tools
        for section, value in loaded.items():
            config.setdefault(section, value)
        self.config = config

        # Save any changes made to ensure configuration structure
        self.save_config()
        return self.config

    def save_config(self):
        """Save the configuration file"""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, 'w') as f:
            json.dump(self.config, f, indent=2)

    def save_reader_settings(self, values):
        self.config["reader_settings"] = dict(values)
        try:
            self.save_config()
        except OSError as e:
            logger.error("Failed to save settings to %s: %s", self.config_path, e)

    def create_settings(self):
        """Build the shared ReaderSettings record bound to this store"""
        return ReaderSettings(self.config.get("reader_settings"), store=self)
