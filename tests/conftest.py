"""Shared pytest fixtures and configuration."""
import os

import pytest

# Run Qt without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from accessreader.components.loupe import ElementInfo
from accessreader.dictation.recognition_engine import RecognitionAlreadyStartedError, RecognitionEngine
from accessreader.reader_session import ReaderSession
from accessreader.settings.reader_settings import ReaderSettings, SettingsStore
from accessreader.tts.speech_engine import SpeechEngine, Voice


class FakeSpeechEngine(SpeechEngine):
    """Records speak/cancel calls; tests complete utterances by hand"""

    def __init__(self, voices=None):
        super().__init__()
        self.voices = voices if voices is not None else [Voice("amy", "amy (piper)", "en_US")]
        self.spoken = []        # (utterance_id, text, voice_id)
        self.cancel_count = 0
        self.shutdown_count = 0

    def list_voices(self):
        return list(self.voices)

    def speak(self, text, voice_id=None):
        utterance_id = self.next_utterance_id()
        self.spoken.append((utterance_id, text, voice_id))
        return utterance_id

    def cancel_all(self):
        self.cancel_count += 1

    def shutdown(self):
        self.shutdown_count += 1
        super().shutdown()

    @property
    def last_id(self):
        return self.spoken[-1][0]

    @property
    def spoken_texts(self):
        return [text for _, text, _ in self.spoken]

    def finish(self, utterance_id=None):
        self.utteranceFinished.emit(self.last_id if utterance_id is None else utterance_id)

    def fail(self, message="synthesis failed", utterance_id=None):
        self.utteranceError.emit(self.last_id if utterance_id is None else utterance_id, message)


class FakeRecognitionEngine(RecognitionEngine):
    """Recognition engine driven directly by tests"""

    def __init__(self):
        super().__init__()
        self.listening = False
        self.start_count = 0
        self.stop_count = 0
        self.abort_count = 0

    def start(self):
        if self.listening:
            raise RecognitionAlreadyStartedError("Recognition already started")
        self.listening = True
        self.start_count += 1

    def stop(self):
        self.stop_count += 1
        if self.listening:
            self.end_session()

    def abort(self):
        self.abort_count += 1
        self.listening = False

    def is_listening(self):
        return self.listening

    def say(self, transcript):
        self.finalResult.emit(transcript)

    def end_session(self):
        self.listening = False
        self.sessionEnded.emit()

    def fail(self, code):
        self.errorOccurred.emit(code)


class FakeHitTester:
    """Hit tester returning canned caret and element results"""

    def __init__(self, caret=None, element=None):
        self.caret = caret
        self.element = element
        self.calls = []

    def resolve_caret(self, x, y):
        self.calls.append((x, y))
        return self.caret

    def resolve_element(self, x, y):
        return self.element


@pytest.fixture(autouse=True)
def _qt_app(qapp):
    """Every test runs with a QApplication available"""
    return qapp


@pytest.fixture
def speech_engine():
    return FakeSpeechEngine()


@pytest.fixture
def recognition_engine():
    return FakeRecognitionEngine()


@pytest.fixture
def settings_store(tmp_path):
    store = SettingsStore(tmp_path / ".accessreader")
    store.load_config()
    return store


@pytest.fixture
def settings(settings_store):
    return settings_store.create_settings()


@pytest.fixture
def plain_settings():
    """Settings record without persistence"""
    return ReaderSettings()


@pytest.fixture
def session(settings, speech_engine, recognition_engine):
    reader_session = ReaderSession(settings, speech_engine, recognition_engine)
    yield reader_session
    reader_session.shutdown()


@pytest.fixture
def make_hit_tester():
    return FakeHitTester


@pytest.fixture
def button_element():
    return ElementInfo("button", "Read all", "")
