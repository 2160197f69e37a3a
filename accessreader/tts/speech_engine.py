# accessreader/tts/speech_engine.py
import itertools
from typing import List, NamedTuple, Optional

from PySide6.QtCore import QObject, Signal


class Voice(NamedTuple):
    id: str
    display_name: str
    language: str


class SpeechEngine(QObject):
    """
    Capability boundary for speech synthesis.

    speak() returns an utterance id and completes asynchronously with exactly
    one of utteranceFinished or utteranceError carrying that id. A cancelled
    utterance may still report an event afterwards; listeners compare ids to
    discard it.
    """

    utteranceFinished = Signal(int)   # utterance id
    utteranceError = Signal(int, str)  # utterance id, message

    def __init__(self, parent=None):
        super().__init__(parent)
        self._utterance_ids = itertools.count(1)

    def next_utterance_id(self) -> int:
        return next(self._utterance_ids)

    def list_voices(self) -> List[Voice]:
        raise NotImplementedError

    def speak(self, text: str, voice_id: Optional[str] = None) -> int:
        raise NotImplementedError

    def cancel_all(self):
        raise NotImplementedError

    def shutdown(self):
        """Release engine resources"""
        self.cancel_all()
