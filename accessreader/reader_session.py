# accessreader/reader_session.py
import atexit
import logging
import weakref

from PySide6.QtCore import QObject, Signal

from accessreader.components.annotation_store import AnnotationStore
from accessreader.components.highlight_store import HighlightStore
from accessreader.components.loupe import LoupeTracker
from accessreader.components.text_renderer import render_paragraph
from accessreader.dictation.voice_commands import SETTING_COMMANDS, VoiceCommand, interpret_command
from accessreader.dictation.voice_control import VoiceControlManager
from accessreader.nlp.paragraph_segmenter import segment_paragraphs
from accessreader.tts.playback_manager import PlaybackManager

logger = logging.getLogger(__name__)


def _release_at_exit(session_ref):
    session = session_ref()
    if session is None:
        return
    try:
        session.shutdown()
    except RuntimeError as e:
        # Qt may already have destroyed the underlying objects
        logger.debug("Reader session already released: %s", e)


class ReaderSession(QObject):
    """
    One reading session over one loaded document.

    Owns the paragraph list, the active paragraph, the highlight and
    annotation stores, playback, voice control and the loupe. Loading a new
    document rebuilds the paragraphs and resets everything derived from them.
    """

    documentLoaded = Signal(int)            # paragraph count
    activeParagraphChanged = Signal(object)  # paragraph index or None
    scrollRequested = Signal(int)           # paragraph index to bring into view

    def __init__(self, settings, speech_engine, recognition_engine=None, hit_tester=None, parent=None):
        super().__init__(parent)
        self.settings = settings
        self._paragraphs = []
        self._active_index = None
        self._shut_down = False

        self.highlights = HighlightStore(parent=self)
        self.annotations = AnnotationStore(parent=self)
        self.playback = PlaybackManager(speech_engine, settings, parent=self)
        self.voice_control = VoiceControlManager(recognition_engine, parent=self)
        self.loupe = LoupeTracker(hit_tester, parent=self)

        self.playback.paragraphAdvanced.connect(self._on_paragraph_advanced)
        self.voice_control.handler_ref.set(self.process_voice_command)
        self.settings.settingsChanged.connect(self._on_settings_changed)
        self.loupe.set_active(self.settings.get("is_loupe_active"))

        atexit.register(_release_at_exit, weakref.ref(self))

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.shutdown()
        return False

    # --- Document ---

    @property
    def paragraphs(self):
        return list(self._paragraphs)

    @property
    def active_paragraph_index(self):
        return self._active_index

    def load_document(self, text):
        """Replace the document; resets selection, playback, highlights and notes"""
        self.playback.stop()
        self._paragraphs = segment_paragraphs(text)
        self.playback.set_paragraphs(self._paragraphs)
        self.highlights.reset(self._paragraphs)
        self.annotations.clear()

        self._active_index = None
        self.activeParagraphChanged.emit(None)

        logger.info("Loaded document with %d paragraphs", len(self._paragraphs))
        self.documentLoaded.emit(len(self._paragraphs))
        return self.paragraphs

    def paragraph_text(self, index):
        return self._paragraphs[index].text

    # --- Navigation ---

    def set_active_paragraph(self, index, scroll=False):
        """
        Manual selection (click, keyboard, voice).

        Any manual move to another paragraph interrupts playback before the
        new index is published.
        """
        if not 0 <= index < len(self._paragraphs):
            logger.debug("Ignoring selection of paragraph %s", index)
            return False

        if index != self._active_index:
            if self.playback.is_speaking():
                self.playback.stop()
            self._active_index = index
            self.activeParagraphChanged.emit(index)

        if scroll:
            self.scrollRequested.emit(index)
        return True

    def navigate_next(self):
        if not self._paragraphs:
            return False
        if self._active_index is None:
            target = 0
        else:
            target = min(len(self._paragraphs) - 1, self._active_index + 1)
        return self.set_active_paragraph(target, scroll=True)

    def navigate_previous(self):
        if not self._paragraphs:
            return False
        current = 0 if self._active_index is None else self._active_index
        return self.set_active_paragraph(max(0, current - 1), scroll=True)

    def _set_active_programmatically(self, index):
        self._active_index = index
        self.activeParagraphChanged.emit(index)
        self.scrollRequested.emit(index)

    def _on_paragraph_advanced(self, index):
        self._set_active_programmatically(index)

    # --- Playback ---

    def speak_current(self):
        if self._active_index is None:
            return False
        return self.playback.speak_paragraph(self._active_index)

    def speak_all(self):
        if not self._paragraphs:
            return False
        if self._active_index is None:
            self._set_active_programmatically(0)
        return self.playback.speak_continuous(self._active_index)

    def stop(self):
        self.playback.stop()

    # --- Highlights and notes ---

    def add_highlight(self, paragraph_index, start, end, text=None):
        return self.highlights.add_highlight(paragraph_index, start, end, text)

    def remove_highlight(self, paragraph_index, highlight_id):
        return self.highlights.remove_highlight(paragraph_index, highlight_id)

    def set_annotation(self, paragraph_index, text):
        self.annotations.set_annotation(paragraph_index, text)

    def render_paragraph(self, index):
        return render_paragraph(
            self._paragraphs[index].text,
            self.highlights.highlights_for(index),
            self.settings.get("is_bionic_reading")
        )

    # --- Voice commands ---

    def process_voice_command(self, transcript):
        """Run the action for a recognised transcript; returns the matched command"""
        command = interpret_command(transcript)
        if command is None:
            logger.debug("No voice command matched %r", transcript)
            return None

        if command is VoiceCommand.NEXT:
            self.navigate_next()
        elif command is VoiceCommand.PREVIOUS:
            self.navigate_previous()
        elif command is VoiceCommand.READ_ALL:
            self.speak_all()
        elif command is VoiceCommand.STOP:
            self.stop()
        else:
            key, value = SETTING_COMMANDS[command]
            self.settings.update(**{key: value})
        return command

    def _on_settings_changed(self, changed):
        if "is_loupe_active" in changed:
            self.loupe.set_active(changed["is_loupe_active"])

    # --- Teardown ---

    def shutdown(self):
        """Stop speech and release the recognition engine"""
        if self._shut_down:
            return
        self._shut_down = True
        logger.debug("Shutting down reader session")
        try:
            self.playback.stop()
            self.playback.engine.shutdown()
        finally:
            self.voice_control.shutdown()
