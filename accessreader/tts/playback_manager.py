# accessreader/tts/playback_manager.py
"""
Paragraph playback state machine

Drives single-paragraph and continuous reading on top of a SpeechEngine. The
whole playback state is one PlaybackState value and every change goes through
PlaybackManager._transition(), so contradictory combinations (for example
"continuous but not speaking") cannot exist.
"""

import logging
from enum import Enum
from typing import NamedTuple, Optional

from PySide6.QtCore import QObject, Signal

logger = logging.getLogger(__name__)


class PlaybackMode(Enum):
    IDLE = "idle"
    SPEAKING_SINGLE = "speaking_single"
    SPEAKING_CONTINUOUS = "speaking_continuous"


class AdvanceMode(Enum):
    MANUAL = "manual"
    PROGRAMMATIC = "programmatic"


class PlaybackState(NamedTuple):
    mode: PlaybackMode
    paragraph_index: Optional[int] = None
    advance_mode: Optional[AdvanceMode] = None

    @property
    def is_speaking(self):
        return self.mode is not PlaybackMode.IDLE

    @property
    def is_continuous(self):
        return self.mode is PlaybackMode.SPEAKING_CONTINUOUS


IDLE = PlaybackState(PlaybackMode.IDLE)


class PlaybackManager(QObject):
    """
    Speaks paragraphs one at a time.

    In continuous mode a finished utterance advances to the next paragraph on
    its own and reports it through paragraphAdvanced; the session treats that
    as a programmatic move (scroll, no interruption). At most one utterance is
    in flight: every new utterance cancels the previous one, and engine events
    for any utterance other than the current one are ignored.
    """

    stateChanged = Signal(object)      # PlaybackState
    paragraphAdvanced = Signal(int)    # paragraph index reached by auto-advance
    playbackError = Signal(str)

    def __init__(self, engine, settings=None, parent=None):
        super().__init__(parent)
        self.engine = engine
        self.settings = settings
        self._paragraphs = []
        self._state = IDLE
        self._utterance_id = None

        self.engine.utteranceFinished.connect(self._on_utterance_finished)
        self.engine.utteranceError.connect(self._on_utterance_error)

    @property
    def state(self) -> PlaybackState:
        return self._state

    def is_speaking(self):
        return self._state.is_speaking

    def set_paragraphs(self, paragraphs):
        """Replace the paragraph list; always stops playback first"""
        self.stop()
        self._paragraphs = list(paragraphs)

    def speak_paragraph(self, index):
        """Speak a single paragraph, then go idle"""
        return self._speak(PlaybackState(PlaybackMode.SPEAKING_SINGLE, index))

    def speak_continuous(self, index):
        """Speak from a paragraph to the end of the document"""
        return self._speak(PlaybackState(PlaybackMode.SPEAKING_CONTINUOUS, index, AdvanceMode.MANUAL))

    def stop(self):
        """Cancel speech and return to idle. Safe to call at any time."""
        self._utterance_id = None
        self.engine.cancel_all()
        self._transition(IDLE)

    def _speak(self, state):
        index = state.paragraph_index
        if index is None or not 0 <= index < len(self._paragraphs):
            logger.debug("Ignoring request to speak paragraph %s", index)
            return False

        # Starting any utterance cancels the previous one
        self._utterance_id = None
        self.engine.cancel_all()
        self._transition(state)

        text = self._paragraphs[index].text
        self._utterance_id = self.engine.speak(text, self._resolve_voice())
        logger.debug("Speaking paragraph %d as utterance %s (%s)", index, self._utterance_id, state.mode.value)
        return True

    def _resolve_voice(self):
        """Configured voice if the engine currently offers it, else engine default"""
        if self.settings is None:
            return None
        voice_id = self.settings.get("speech_voice_uri")
        if not voice_id:
            return None
        if any(voice.id == voice_id for voice in self.engine.list_voices()):
            return voice_id
        logger.debug("Voice %r not available, using engine default", voice_id)
        return None

    def _transition(self, new_state):
        if new_state == self._state:
            return
        old_state = self._state
        self._state = new_state
        logger.debug("Playback %s -> %s", old_state, new_state)
        self.stateChanged.emit(new_state)

    def _on_utterance_finished(self, utterance_id):
        if utterance_id != self._utterance_id:
            return
        self._utterance_id = None

        state = self._state
        if state.is_continuous and state.paragraph_index < len(self._paragraphs) - 1:
            next_index = state.paragraph_index + 1
            self._transition(PlaybackState(PlaybackMode.SPEAKING_CONTINUOUS, next_index, AdvanceMode.PROGRAMMATIC))
            self.paragraphAdvanced.emit(next_index)
            # Listeners may have stopped playback while handling the advance
            if self._state.is_continuous and self._state.paragraph_index == next_index:
                self._utterance_id = self.engine.speak(self._paragraphs[next_index].text, self._resolve_voice())
        else:
            self._transition(IDLE)

    def _on_utterance_error(self, utterance_id, message):
        if utterance_id != self._utterance_id:
            return
        logger.warning("Speech failed for paragraph %s: %s", self._state.paragraph_index, message)
        self._utterance_id = None
        self._transition(IDLE)
        self.playbackError.emit(message)
