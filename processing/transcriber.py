import logging
import threading
from typing import Callable

import numpy as np

logger = logging.getLogger(__name__)

_model_cache = {}

PartialCallback = Callable[[str], None]


class LiveTranscriber:
    """Continuous speech-to-text over audio fed in while listening.

    Every ``partial_interval`` seconds the whole buffered utterance is
    transcribed again and the callback receives the full text so far, so each
    update replaces the previous one. ``stop()`` runs one last pass before
    returning.
    """

    def __init__(self, model_size: str = "base", language: str | None = "en",
                 partial_interval: float = 1.0):
        self.model_size = model_size
        self.language = language
        self.partial_interval = partial_interval
        self._model = None
        self._lock = threading.Lock()
        self._buffer = bytearray()
        self._listening = threading.Event()
        self._stopping = threading.Event()
        self._worker: threading.Thread | None = None
        self._callback: PartialCallback | None = None
        self._last_text = ""
        self._transcribed_len = 0

    def _load_model(self):
        if self.model_size in _model_cache:
            self._model = _model_cache[self.model_size]
            return

        from faster_whisper import WhisperModel

        # Detect best device
        device = "cpu"
        compute_type = "int8"
        try:
            import torch
            if torch.cuda.is_available():
                device = "cuda"
                compute_type = "float16"
        except ImportError:
            pass

        logger.info(
            "Cargando modelo Whisper '%s' en %s (compute_type=%s)...",
            self.model_size, device, compute_type,
        )
        self._model = WhisperModel(
            self.model_size,
            device=device,
            compute_type=compute_type,
        )
        _model_cache[self.model_size] = self._model
        logger.info("Modelo Whisper cargado")

    @property
    def is_loaded(self) -> bool:
        return self._model is not None or self.model_size in _model_cache

    def initialize(self) -> bool:
        if self._model is not None:
            return True
        try:
            self._load_model()
        except (ImportError, OSError, RuntimeError, ValueError) as e:
            logger.warning("Reconocimiento de voz no disponible: %s", e)
            return False
        return True

    @property
    def is_listening(self) -> bool:
        return self._listening.is_set()

    def feed(self, pcm: bytes):
        if not self._listening.is_set():
            return
        with self._lock:
            self._buffer.extend(pcm)

    def listen(self, on_partial_result: PartialCallback):
        if self._model is None:
            raise RuntimeError("El modelo Whisper no esta cargado")
        if self._listening.is_set():
            raise RuntimeError("Ya hay una transcripcion en curso")

        with self._lock:
            self._buffer = bytearray()
        self._callback = on_partial_result
        self._last_text = ""
        self._transcribed_len = 0
        self._stopping.clear()
        self._listening.set()
        self._worker = threading.Thread(target=self._run, daemon=True)
        self._worker.start()

    def stop(self) -> str:
        if not self._listening.is_set():
            return self._last_text
        self._listening.clear()
        self._stopping.set()
        if self._worker is not None:
            self._worker.join(timeout=30)
            self._worker = None
        try:
            self._transcribe_pending()
        finally:
            self._callback = None
        return self._last_text

    def _run(self):
        while not self._stopping.wait(self.partial_interval):
            try:
                self._transcribe_pending()
            except Exception:
                # El siguiente ciclo reintenta con el buffer completo
                logger.exception("Error en la transcripcion parcial")
                with self._lock:
                    self._transcribed_len = 0

    def _transcribe_pending(self):
        with self._lock:
            if len(self._buffer) == self._transcribed_len:
                return
            pcm = bytes(self._buffer)
            self._transcribed_len = len(pcm)

        text = self._transcribe(pcm)
        if text != self._last_text:
            self._last_text = text
            callback = self._callback
            if callback is not None:
                callback(text)

    def _transcribe(self, pcm: bytes) -> str:
        audio = np.frombuffer(pcm, dtype=np.int16).astype(np.float32) / 32768.0
        segments, _info = self._model.transcribe(
            audio,
            language=self.language,
            beam_size=1,
            vad_filter=True,
        )
        return " ".join(segment.text.strip() for segment in segments).strip()
