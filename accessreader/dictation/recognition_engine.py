# accessreader/dictation/recognition_engine.py
import json
import logging
import queue
import threading
from pathlib import Path

from PySide6.QtCore import QObject, QThread, Signal

# Import Vosk if available
try:
    from vosk import Model, KaldiRecognizer, SetLogLevel
    VOSK_AVAILABLE = True
except ImportError:
    VOSK_AVAILABLE = False

logger = logging.getLogger(__name__)

# Error codes reported through RecognitionEngine.errorOccurred
ERROR_NOT_ALLOWED = "not-allowed"
ERROR_SERVICE_NOT_ALLOWED = "service-not-allowed"
ERROR_AUDIO_CAPTURE = "audio-capture"
ERROR_NO_SPEECH = "no-speech"
ERROR_NETWORK = "network"
ERROR_ABORTED = "aborted"

SAMPLE_RATE = 16000
BLOCK_SIZE = 4096


class RecognitionAlreadyStartedError(RuntimeError):
    """Raised by start() when the engine is already listening"""


class RecognitionEngine(QObject):
    """
    Capability boundary for continuous speech recognition.

    Once started the engine keeps listening and reports each final transcript
    through finalResult. When listening ends for any reason, sessionEnded is
    emitted; errorOccurred carries one of the ERROR_* codes.
    """

    finalResult = Signal(str)
    sessionEnded = Signal()
    errorOccurred = Signal(str)

    def start(self):
        raise NotImplementedError

    def stop(self):
        raise NotImplementedError

    def abort(self):
        raise NotImplementedError

    def is_listening(self):
        raise NotImplementedError


class VoskListenWorker(QThread):
    """Worker thread for Vosk-based command recognition"""

    finalTextReceived = Signal(str)
    errorOccurred = Signal(str)

    def __init__(self, model_path):
        super().__init__()
        self.model_path = model_path
        self._stop_event = threading.Event()

    def run(self):
        """Main processing loop: microphone blocks in, final transcripts out"""
        if not VOSK_AVAILABLE:
            logger.error("Vosk is not available. Please install the required dependencies.")
            self.errorOccurred.emit(ERROR_SERVICE_NOT_ALLOWED)
            return

        try:
            import sounddevice as sd

            SetLogLevel(-1)
            model = Model(str(self.model_path))
            recognizer = KaldiRecognizer(model, SAMPLE_RATE)
        except Exception:
            logger.exception("Failed to load Vosk model from %s", self.model_path)
            self.errorOccurred.emit(ERROR_SERVICE_NOT_ALLOWED)
            return

        audio_blocks = queue.Queue()

        def audio_callback(indata, frames, time_info, status):
            if status:
                logger.debug("Audio input status: %s", status)
            audio_blocks.put(bytes(indata))

        try:
            stream = sd.RawInputStream(
                samplerate=SAMPLE_RATE,
                blocksize=BLOCK_SIZE,
                dtype='int16',
                channels=1,
                callback=audio_callback
            )
            stream.start()
        except Exception as e:
            # The microphone could not be opened: blocked or missing device
            logger.error("Microphone access failed: %s", e)
            self.errorOccurred.emit(ERROR_NOT_ALLOWED)
            return

        logger.info("Vosk listening started")
        try:
            while not self._stop_event.is_set():
                try:
                    data = audio_blocks.get(timeout=0.1)
                except queue.Empty:
                    continue

                if recognizer.AcceptWaveform(data):
                    result = json.loads(recognizer.Result())
                    text = result.get('text', '')
                    if text.strip():
                        self.finalTextReceived.emit(text)
        except Exception as e:
            if not self._stop_event.is_set():
                logger.warning("Audio processing error: %s", e)
                self.errorOccurred.emit(ERROR_AUDIO_CAPTURE)
        finally:
            stream.stop()
            stream.close()
            logger.info("Vosk listening stopped")

    def stop(self):
        """Stop the listening thread"""
        self._stop_event.set()


class VoskRecognitionEngine(RecognitionEngine):
    """Continuous command recognition with a local Vosk model"""

    def __init__(self, model_path, parent=None):
        super().__init__(parent)
        self.model_path = Path(model_path) if model_path else None
        self.worker = None

    def is_listening(self):
        return self.worker is not None

    def start(self):
        if self.worker is not None:
            raise RecognitionAlreadyStartedError("Recognition already started")

        if self.model_path is None or not self.model_path.exists():
            logger.error("Vosk model not found at %s", self.model_path)
            self.errorOccurred.emit(ERROR_SERVICE_NOT_ALLOWED)
            return

        self.worker = VoskListenWorker(self.model_path)
        self.worker.finalTextReceived.connect(self.finalResult)
        self.worker.errorOccurred.connect(self.errorOccurred)
        self.worker.finished.connect(self._on_worker_finished)
        self.worker.start()

    def stop(self):
        """Stop listening; sessionEnded follows once the worker has exited"""
        if self.worker is not None:
            self.worker.stop()

    def abort(self):
        """Stop listening immediately and drop any pending events"""
        worker = self.worker
        if worker is None:
            return
        self.worker = None
        try:
            worker.finalTextReceived.disconnect(self.finalResult)
            worker.errorOccurred.disconnect(self.errorOccurred)
            worker.finished.disconnect(self._on_worker_finished)
        except (RuntimeError, TypeError):
            pass  # Signal might not be connected

        worker.stop()
        if not worker.wait(1000):
            logger.warning("Forcing recognition thread termination")
            worker.terminate()
            worker.wait(1000)
        worker.deleteLater()

    def _on_worker_finished(self):
        worker = self.worker
        self.worker = None
        if worker is not None:
            worker.deleteLater()
        self.sessionEnded.emit()
