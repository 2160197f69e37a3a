# accessreader/tts/piper_engine.py
import json
import logging
import os
import subprocess
import tempfile
import time
from pathlib import Path

import numpy as np
from PySide6.QtCore import QThread, QTimer, Signal

from accessreader.tts.speech_engine import SpeechEngine, Voice

logger = logging.getLogger(__name__)

# Leading silence so the audio device does not clip the first syllable
LEADING_SILENCE_MS = 100


def pad_with_silence(data, samplerate, silence_ms=LEADING_SILENCE_MS):
    """Prepend silence_ms of silence to mono or multi-channel audio"""
    if silence_ms <= 0:
        return data
    silence_samples = int((silence_ms / 1000.0) * samplerate)
    if len(data.shape) == 1:  # Mono
        silence = np.zeros(silence_samples, dtype=data.dtype)
    else:
        silence = np.zeros((silence_samples, data.shape[1]), dtype=data.dtype)
    return np.concatenate([silence, data])


def find_espeak_data(piper_dir):
    """Locate the espeak-ng-data directory shipped with a Piper build"""
    piper_dir = Path(piper_dir)
    possible_paths = [
        piper_dir / "espeak-ng-data",
        piper_dir / "build" / "piper" / "share" / "espeak-ng-data",
        piper_dir / "build" / "share" / "espeak-ng-data",
        piper_dir / "share" / "espeak-ng-data",
    ]
    for path in possible_paths:
        if path.exists() and (path / "phontab").exists():
            return path
    return None


def list_installed_piper_voices(models_dir):
    """
    List installed Piper voices.

    Each voice lives in its own directory (the voice nickname, e.g. "amy")
    holding a <name>.onnx model and its <name>.onnx.json config.

    Returns:
        dict mapping voice id to (model_path, config_path, language)
    """
    voices = {}
    models_dir = Path(models_dir)
    if not models_dir.is_dir():
        return voices

    for voice_dir in sorted(models_dir.iterdir()):
        if not voice_dir.is_dir():
            continue
        for model_path in sorted(voice_dir.glob("*.onnx")):
            config_path = model_path.with_name(model_path.name + ".json")
            if not config_path.exists():
                continue

            language = ""
            try:
                with open(config_path, 'r') as f:
                    model_config = json.load(f)
                language = model_config.get("language", {}).get("code", "")
            except (OSError, ValueError, AttributeError) as e:
                logger.debug("Could not read language from %s: %s", config_path, e)

            voices[voice_dir.name] = (str(model_path), str(config_path), language)
            break

    return voices


class PiperUtteranceWorker(QThread):
    """Synthesises one utterance with Piper and plays it without blocking the UI"""

    utteranceDone = Signal(int)
    utteranceFailed = Signal(int, str)

    def __init__(self, utterance_id, text, piper_binary, model_path, config_path):
        super().__init__()
        self.utterance_id = utterance_id
        self.text = text
        self.piper_binary = piper_binary
        self.model_path = model_path
        self.config_path = config_path
        self._stop_flag = False
        self._process = None

    def stop(self):
        """Stop synthesis or playback as soon as possible"""
        self._stop_flag = True
        process = self._process
        if process is not None and process.poll() is None:
            process.kill()

    def run(self):
        audio_path = None
        try:
            with tempfile.NamedTemporaryFile(suffix=".wav", delete=False) as tmp:
                audio_path = tmp.name

            if not self._synthesize(audio_path):
                return
            if self._play(audio_path):
                self.utteranceDone.emit(self.utterance_id)

        except Exception as e:
            logger.exception("Piper utterance %d failed", self.utterance_id)
            if not self._stop_flag:
                self.utteranceFailed.emit(self.utterance_id, str(e))
        finally:
            if audio_path and os.path.exists(audio_path):
                try:
                    os.remove(audio_path)
                except OSError:
                    logger.debug("Could not remove %s", audio_path)

    def _synthesize(self, output_path):
        cmd = [
            self.piper_binary,
            "--model", self.model_path,
            "--config", self.config_path,
            "--output_file", output_path
        ]
        self._process = subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True
        )
        _, stderr = self._process.communicate(self.text)
        returncode = self._process.returncode
        self._process = None

        if self._stop_flag:
            return False
        if returncode != 0:
            message = (stderr or "").strip() or f"piper exited with status {returncode}"
            logger.warning("Piper failed for utterance %d: %s", self.utterance_id, message)
            self.utteranceFailed.emit(self.utterance_id, message)
            return False
        return True

    def _play(self, audio_path):
        import soundfile as sf
        import sounddevice as sd

        data, samplerate = sf.read(audio_path, dtype='float32')
        data = pad_with_silence(data, samplerate)
        if self._stop_flag:
            return False

        sd.play(data, samplerate)
        # Wait for playback to complete, checking stop condition
        while sd.get_stream().active and not self._stop_flag:
            time.sleep(0.01)

        if self._stop_flag:
            sd.stop()
            return False
        return True


class PiperSpeechEngine(SpeechEngine):
    """SpeechEngine backed by the Piper command line synthesiser"""

    def __init__(self, piper_path, models_dir, default_voice="", parent=None):
        super().__init__(parent)
        self.piper_path = Path(piper_path) if piper_path else None
        self.models_dir = Path(models_dir)
        self.default_voice = default_voice
        self.worker = None
        self._setup_espeak_path()

    @property
    def piper_binary(self):
        if self.piper_path is None:
            return None
        return str(self.piper_path / "build" / "piper")

    def _setup_espeak_path(self):
        """Set up ESPEAK_DATA_PATH environment variable if needed"""
        if os.environ.get("ESPEAK_DATA_PATH") or self.piper_path is None:
            return

        path = find_espeak_data(self.piper_path)
        if path:
            os.environ["ESPEAK_DATA_PATH"] = str(path)
            logger.info("Set ESPEAK_DATA_PATH to: %s", path)
        else:
            logger.warning("Could not find espeak-ng-data directory. Piper may fail to run.")

    def list_voices(self):
        installed = list_installed_piper_voices(self.models_dir)
        return [Voice(voice_id, f"{voice_id} (piper)", language)
                for voice_id, (_, _, language) in installed.items()]

    def _resolve_model(self, voice_id):
        installed = list_installed_piper_voices(self.models_dir)
        for candidate in (voice_id, self.default_voice):
            if candidate and candidate in installed:
                return installed[candidate]
        if installed:
            return next(iter(installed.values()))
        return None

    def speak(self, text, voice_id=None):
        self.cancel_all()
        utterance_id = self.next_utterance_id()

        binary = self.piper_binary
        model = self._resolve_model(voice_id)
        if not binary or not os.path.isfile(binary):
            self._report_error_later(utterance_id, f"Piper binary not found at {binary}")
            return utterance_id
        if model is None:
            self._report_error_later(utterance_id, f"No Piper voices installed in {self.models_dir}")
            return utterance_id

        model_path, config_path, _ = model
        logger.debug("Speaking utterance %d with model %s", utterance_id, model_path)
        self.worker = PiperUtteranceWorker(utterance_id, text, binary, model_path, config_path)
        self.worker.utteranceDone.connect(self.utteranceFinished)
        self.worker.utteranceFailed.connect(self.utteranceError)
        self.worker.start()
        return utterance_id

    def _report_error_later(self, utterance_id, message):
        # Errors must arrive after speak() has returned the id
        logger.error(message)
        QTimer.singleShot(0, lambda: self.utteranceError.emit(utterance_id, message))

    def cancel_all(self):
        """Stop the current utterance, if any"""
        if self.worker is None:
            return

        worker = self.worker
        self.worker = None
        try:
            worker.utteranceDone.disconnect(self.utteranceFinished)
            worker.utteranceFailed.disconnect(self.utteranceError)
        except (RuntimeError, TypeError):
            pass  # Signal might not be connected

        worker.stop()
        if not worker.wait(2000):
            logger.warning("Piper worker didn't exit cleanly, forcing termination")
            worker.terminate()
            worker.wait(1000)
        worker.deleteLater()

        # Make sure we explicitly stop any audio playback
        import sounddevice as sd
        sd.stop()
