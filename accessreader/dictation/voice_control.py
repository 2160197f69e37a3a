# accessreader/dictation/voice_control.py
import logging

from PySide6.QtCore import QObject, Signal

from accessreader.dictation.recognition_engine import (
    ERROR_NOT_ALLOWED, ERROR_SERVICE_NOT_ALLOWED, RecognitionAlreadyStartedError
)
from accessreader.dictation.voice_commands import normalize_transcript

logger = logging.getLogger(__name__)

FATAL_ERRORS = {
    ERROR_NOT_ALLOWED: "Microphone access blocked. Please allow permissions.",
    ERROR_SERVICE_NOT_ALLOWED: "Speech recognition is not available. Please check that a speech-to-text model is installed.",
}


class CommandHandlerRef:
    """
    Single mutable slot holding the current command handler.

    The recognition engine delivers results asynchronously; it always calls
    through this slot, so whoever owns the command state can swap the handler
    at any time and the next result reaches the latest one.
    """

    def __init__(self, handler=None):
        self.handler = handler

    def set(self, handler):
        self.handler = handler

    def __call__(self, transcript):
        if self.handler is not None:
            self.handler(transcript)


class VoiceControlManager(QObject):
    """
    Voice control lifecycle on top of a RecognitionEngine.

    While active the engine listens continuously and is restarted whenever it
    ends on its own. Permission errors switch voice control off and are
    reported through permissionDenied; any other error is only logged and the
    restart loop recovers from it.
    """

    # Signals
    activeChanged = Signal(bool)
    commandReceived = Signal(str)   # last recognised transcript
    permissionDenied = Signal(str)  # message for the user

    def __init__(self, engine=None, handler_ref=None, parent=None):
        super().__init__(parent)
        self.engine = engine
        self.handler_ref = handler_ref if handler_ref is not None else CommandHandlerRef()
        self._active = False
        self._last_transcript = ""
        self._released = False

        if self.engine is not None:
            self.engine.finalResult.connect(self.on_final_result)
            self.engine.sessionEnded.connect(self.on_session_ended)
            self.engine.errorOccurred.connect(self.on_error)

    def is_available(self):
        return self.engine is not None and not self._released

    def is_active(self):
        return self._active

    @property
    def last_transcript(self):
        return self._last_transcript

    def toggle(self):
        """Toggle voice control on/off based on current state"""
        self.set_active(not self._active)

    def set_active(self, active):
        if active == self._active:
            return
        if active and not self.is_available():
            logger.info("Voice control requested but no recognition engine is available")
            self.permissionDenied.emit(FATAL_ERRORS[ERROR_SERVICE_NOT_ALLOWED])
            return

        self._active = active
        self.activeChanged.emit(active)

        if active:
            self._last_transcript = ""
            self._start_engine()
        else:
            self.engine.stop()

    def _start_engine(self):
        if self.engine.is_listening():
            logger.debug("Recognition already listening")
            return
        try:
            self.engine.start()
        except RecognitionAlreadyStartedError:
            logger.debug("Recognition already started")

    def on_final_result(self, transcript):
        """Handle a final transcript from the engine"""
        if not self._active:
            return
        transcript = normalize_transcript(transcript)
        logger.info("Voice command received: %s", transcript)
        self._last_transcript = transcript
        self.commandReceived.emit(transcript)
        self.handler_ref(transcript)

    def on_session_ended(self):
        """Keep listening while voice control is still switched on"""
        if self._active and not self._released:
            logger.debug("Recognition ended while active, restarting")
            self._start_engine()

    def on_error(self, code):
        """Handle recognition errors"""
        if code not in FATAL_ERRORS:
            logger.warning("Speech recognition error: %s", code)
            return

        if not self._active:
            logger.debug("Ignoring speech recognition error %s while voice control is off", code)
            return

        logger.error("Speech recognition error: %s", code)
        self._active = False
        self.activeChanged.emit(False)
        self.permissionDenied.emit(FATAL_ERRORS[code])

    def shutdown(self):
        """Release the recognition engine; safe to call more than once"""
        if self.engine is None or self._released:
            return
        self._released = True
        self._active = False
        self.engine.abort()
