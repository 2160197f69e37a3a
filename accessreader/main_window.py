# accessreader/main_window.py
import logging
from pathlib import Path

from PySide6.QtCore import Qt
from PySide6.QtGui import QAction, QKeySequence, QShortcut
from PySide6.QtWidgets import (
    QComboBox, QFileDialog, QHBoxLayout, QLabel, QListWidget, QListWidgetItem, QMainWindow, QMessageBox,
    QPlainTextEdit, QPushButton, QToolBar, QVBoxLayout, QWidget
)

from accessreader.components.loupe_overlay import LoupeOverlay
from accessreader.components.reader_view import ReaderView, reader_font
from accessreader.dictation.recognition_engine import VoskRecognitionEngine
from accessreader.reader_session import ReaderSession
from accessreader.tts.piper_engine import PiperSpeechEngine

logger = logging.getLogger(__name__)

SCROLL_PAGE_FRACTION = 0.7

# (window background, text, accent)
THEME_COLORS = {
    "light": ("#F9FAFB", "#111827", "#2563EB"),
    "dark": ("#111827", "#F3F4F6", "#60A5FA"),
    "sepia": ("#F4ECD8", "#5B4636", "#5B4636"),
    "high-contrast": ("#000000", "#FACC15", "#FACC15"),
    "ink": ("#FFFFFF", "#000000", "#000000"),
}


def build_session(store, data_dir):
    """Create a ReaderSession with the Piper and Vosk engines named in the config"""
    config = store.config
    settings = store.create_settings()

    piper_settings = config.get("piper_settings", {})
    speech_engine = PiperSpeechEngine(
        piper_settings.get("path", ""),
        Path(data_dir) / "tts-models" / "piper",
        default_voice=piper_settings.get("voice", "")
    )

    model_name = config.get("vosk_settings", {}).get("model", "")
    model_path = Path(data_dir) / "stt-models" / "vosk" / model_name if model_name else None
    recognition_engine = VoskRecognitionEngine(model_path)

    return ReaderSession(settings, speech_engine, recognition_engine)


class ReaderMainWindow(QMainWindow):
    """Main window: the paragraph view, a notes and highlights panel and the reader shortcuts"""

    def __init__(self, session, parent=None):
        super().__init__(parent)
        self.session = session
        self.settings = session.settings

        self.setWindowTitle("AccessReader")
        self.setMinimumSize(800, 600)

        self.setup_ui()
        self.init_shortcuts()

        session.activeParagraphChanged.connect(self.update_side_panel)
        session.documentLoaded.connect(self.update_side_panel)
        session.highlights.highlightsChanged.connect(self.update_side_panel)
        session.annotations.annotationChanged.connect(self.update_notes_list)
        session.playback.stateChanged.connect(self.update_status)
        session.playback.playbackError.connect(self.on_playback_error)
        session.voice_control.activeChanged.connect(self.update_status)
        session.voice_control.commandReceived.connect(self.on_command_received)
        session.voice_control.permissionDenied.connect(self.on_permission_denied)
        self.settings.settingsChanged.connect(self.on_settings_changed)

        self.apply_theme()
        self.update_side_panel()
        self.update_status()

    def setup_ui(self):
        """Set up the user interface"""
        toolbar = QToolBar("Reader")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        self.open_action = QAction("Open...", self)
        self.open_action.setShortcut(QKeySequence.Open)
        self.open_action.triggered.connect(self.open_file_dialog)
        toolbar.addAction(self.open_action)

        self.read_action = QAction("Read paragraph", self)
        self.read_action.setShortcut(QKeySequence("Alt+S"))
        self.read_action.triggered.connect(self.session.speak_current)
        toolbar.addAction(self.read_action)

        self.read_all_action = QAction("Read all", self)
        self.read_all_action.setShortcut(QKeySequence("Alt+A"))
        self.read_all_action.triggered.connect(self.session.speak_all)
        toolbar.addAction(self.read_all_action)

        self.stop_action = QAction("Stop", self)
        self.stop_action.setShortcut(QKeySequence("Escape"))
        self.stop_action.triggered.connect(self.session.stop)
        toolbar.addAction(self.stop_action)

        toolbar.addSeparator()

        self.marker_action = QAction("Marker", self)
        self.marker_action.setCheckable(True)
        self.marker_action.setShortcut(QKeySequence("Alt+M"))
        self.marker_action.toggled.connect(self.on_marker_toggled)
        toolbar.addAction(self.marker_action)

        self.voice_action = QAction("Voice control", self)
        self.voice_action.setCheckable(True)
        self.voice_action.setShortcut(QKeySequence("Alt+V"))
        self.voice_action.triggered.connect(self.toggle_voice_control)
        toolbar.addAction(self.voice_action)

        self.setting_actions = {}
        for key, label in (("is_focus_mode", "Focus"), ("is_bionic_reading", "Bionic"),
                           ("is_loupe_active", "Magnifier")):
            action = QAction(label, self)
            action.setCheckable(True)
            action.setChecked(self.settings.get(key))
            action.toggled.connect(lambda checked, k=key: self.settings.update(**{k: checked}))
            toolbar.addAction(action)
            self.setting_actions[key] = action

        central_widget = QWidget()
        self.setCentralWidget(central_widget)
        layout = QHBoxLayout(central_widget)

        self.reader_view = ReaderView(self.session, self)
        layout.addWidget(self.reader_view, 1)

        side_panel = QWidget()
        side_panel.setFixedWidth(280)
        side_layout = QVBoxLayout(side_panel)

        self.paragraph_label = QLabel("No paragraph selected")
        side_layout.addWidget(self.paragraph_label)

        side_layout.addWidget(QLabel("Note"))
        self.note_edit = QPlainTextEdit()
        self.note_edit.setAccessibleName("Note for the selected paragraph")
        self.note_edit.textChanged.connect(self.on_note_edited)
        side_layout.addWidget(self.note_edit)

        side_layout.addWidget(QLabel("Highlights"))
        self.highlight_list = QListWidget()
        side_layout.addWidget(self.highlight_list)

        self.remove_highlight_button = QPushButton("Remove highlight")
        self.remove_highlight_button.clicked.connect(self.remove_selected_highlight)
        side_layout.addWidget(self.remove_highlight_button)

        side_layout.addWidget(QLabel("All notes"))
        self.notes_list = QListWidget()
        self.notes_list.itemActivated.connect(self.on_note_item_activated)
        side_layout.addWidget(self.notes_list)

        side_layout.addWidget(QLabel("Voice"))
        self.voice_combo = QComboBox()
        self.voice_combo.setAccessibleName("Speech voice")
        side_layout.addWidget(self.voice_combo)
        self.populate_voices()
        self.voice_combo.currentIndexChanged.connect(self.on_voice_selected)

        layout.addWidget(side_panel)

        self.status_label = QLabel()
        self.statusBar().addWidget(self.status_label)

        # The lens floats over the whole window, toolbar and side panel included
        self.loupe_overlay = LoupeOverlay(
            self.session, self, self.reader_view.text_edit, lambda: reader_font(self.settings)
        )

    def init_shortcuts(self):
        """Initialize keyboard shortcuts"""
        # Navigation keys only apply while the document has focus
        view = self.reader_view
        self.next_shortcuts = []
        for sequence in ("Down", "N"):
            shortcut = QShortcut(QKeySequence(sequence), view)
            shortcut.setContext(Qt.WidgetWithChildrenShortcut)
            shortcut.activated.connect(self.session.navigate_next)
            self.next_shortcuts.append(shortcut)

        self.previous_shortcuts = []
        for sequence in ("Up", "P"):
            shortcut = QShortcut(QKeySequence(sequence), view)
            shortcut.setContext(Qt.WidgetWithChildrenShortcut)
            shortcut.activated.connect(self.session.navigate_previous)
            self.previous_shortcuts.append(shortcut)

        self.page_shortcut = QShortcut(QKeySequence("Space"), view)
        self.page_shortcut.setContext(Qt.WidgetWithChildrenShortcut)
        self.page_shortcut.activated.connect(self.scroll_page)

        # Font size
        self.zoom_in_shortcuts = []
        for sequence in ("Ctrl+=", "Ctrl++"):
            shortcut = QShortcut(QKeySequence(sequence), self)
            shortcut.activated.connect(self.settings.increase_font_size)
            self.zoom_in_shortcuts.append(shortcut)

        self.zoom_out_shortcut = QShortcut(QKeySequence("Ctrl+-"), self)
        self.zoom_out_shortcut.activated.connect(self.settings.decrease_font_size)

    # --- Documents ---

    def open_file_dialog(self):
        path, _ = QFileDialog.getOpenFileName(self, "Open Document", "", "Text files (*.txt);;All files (*)")
        if path:
            self.open_file(path)

    def open_file(self, path):
        """Load a plain text file into the session"""
        try:
            text = Path(path).read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.error("Could not open %s: %s", path, e)
            QMessageBox.warning(self, "Open Document", f"Could not open {path}:\n{e}")
            return False

        self.session.load_document(text)
        self.setWindowTitle(f"AccessReader - {Path(path).name}")
        self.reader_view.text_edit.setFocus()
        return True

    def scroll_page(self):
        scrollbar = self.reader_view.text_edit.verticalScrollBar()
        step = int(self.reader_view.text_edit.viewport().height() * SCROLL_PAGE_FRACTION)
        scrollbar.setValue(scrollbar.value() + step)

    # --- Side panel ---

    def update_side_panel(self, *args):
        index = self.session.active_paragraph_index

        self.note_edit.blockSignals(True)
        if index is None:
            self.paragraph_label.setText("No paragraph selected")
            self.note_edit.setPlainText("")
        else:
            self.paragraph_label.setText(f"Paragraph {index + 1} of {len(self.session.paragraphs)}")
            self.note_edit.setPlainText(self.session.annotations.annotation_for(index))
        self.note_edit.blockSignals(False)
        self.note_edit.setEnabled(index is not None)

        self.highlight_list.clear()
        if index is not None:
            for highlight in self.session.highlights.highlights_for(index):
                item = QListWidgetItem(highlight.text)
                item.setData(Qt.UserRole, highlight.id)
                self.highlight_list.addItem(item)
        self.remove_highlight_button.setEnabled(self.highlight_list.count() > 0)

        self.update_notes_list()

    def update_notes_list(self, *args):
        self.notes_list.clear()
        for index, note in self.session.annotations.annotations():
            item = QListWidgetItem(f"{index + 1}: {note}")
            item.setData(Qt.UserRole, index)
            self.notes_list.addItem(item)

    def on_note_edited(self):
        index = self.session.active_paragraph_index
        if index is not None:
            self.session.set_annotation(index, self.note_edit.toPlainText())

    def on_note_item_activated(self, item):
        self.session.set_active_paragraph(item.data(Qt.UserRole), scroll=True)

    def remove_selected_highlight(self):
        index = self.session.active_paragraph_index
        item = self.highlight_list.currentItem() or self.highlight_list.item(0)
        if index is None or item is None:
            return
        self.session.remove_highlight(index, item.data(Qt.UserRole))

    def populate_voices(self):
        """Fill the voice list from the speech engine; "Default" leaves the choice to the engine"""
        self.voice_combo.blockSignals(True)
        self.voice_combo.clear()
        self.voice_combo.addItem("Default", "")
        for voice in self.session.playback.engine.list_voices():
            self.voice_combo.addItem(f"{voice.display_name} - {voice.language}", voice.id)
        self.select_voice(self.settings.get("speech_voice_uri"))
        self.voice_combo.blockSignals(False)

    def select_voice(self, voice_id):
        # A stored voice that is no longer installed shows as Default
        self.voice_combo.setCurrentIndex(max(0, self.voice_combo.findData(voice_id)))

    def on_voice_selected(self, index):
        voice_id = self.voice_combo.itemData(index) or ""
        if voice_id != self.settings.get("speech_voice_uri"):
            self.settings.update(speech_voice_uri=voice_id)

    # --- Toggles ---

    def on_marker_toggled(self, checked):
        self.reader_view.set_marker_mode(checked)

    def toggle_voice_control(self):
        self.session.voice_control.toggle()
        self.update_status()

    def on_settings_changed(self, changed):
        for key, value in changed.items():
            action = self.setting_actions.get(key)
            if action is not None and action.isChecked() != value:
                action.blockSignals(True)
                action.setChecked(value)
                action.blockSignals(False)
        if "speech_voice_uri" in changed:
            self.voice_combo.blockSignals(True)
            self.select_voice(changed["speech_voice_uri"])
            self.voice_combo.blockSignals(False)
        if "theme" in changed:
            self.apply_theme()

    def apply_theme(self):
        """Apply the reader theme colours to the window"""
        background, text, accent = THEME_COLORS[self.settings.get("theme")]
        self.setStyleSheet(f"""
            QMainWindow, QWidget {{
                background-color: {background};
                color: {text};
            }}
            QTextEdit, QPlainTextEdit, QListWidget {{
                background-color: {background};
                color: {text};
                border: 1px solid {accent};
            }}
            QToolBar QToolButton:checked {{
                border: 2px solid {accent};
            }}
        """)
        self.reader_view.rebuild()

    # --- Status and errors ---

    def update_status(self, *args):
        voice_active = self.session.voice_control.is_active()
        self.voice_action.setChecked(voice_active)

        state = self.session.playback.state
        if state.is_continuous:
            playback = "Reading all"
        elif state.is_speaking:
            playback = "Reading paragraph"
        else:
            playback = "Idle"

        voice = "Voice control on" if voice_active else "Voice control off"
        self.status_label.setText(f"{playback} | {voice}")

    def on_command_received(self, transcript):
        self.statusBar().showMessage(f"Heard: {transcript}", 3000)

    def on_playback_error(self, message):
        QMessageBox.warning(self, "Speech Error", f"Speech playback failed:\n{message}")

    def on_permission_denied(self, message):
        self.voice_action.setChecked(False)
        QMessageBox.warning(self, "Voice Control", message)

    def closeEvent(self, event):
        """Handle window close event"""
        self.session.shutdown()
        super().closeEvent(event)
