import logging
import threading
import wave
from pathlib import Path
from typing import Callable

from pydub.exceptions import CouldntEncodeError

import config
from recorder.mixer import encode_audio, resample, to_mono, wav_duration_secs

logger = logging.getLogger(__name__)

CHUNK_DURATION_MS = 30

PcmListener = Callable[[bytes], None]


def _import_sounddevice():
    # PortAudio se carga al importar sounddevice; sin la libreria nativa falla con OSError
    import sounddevice

    return sounddevice


class AudioRecorder:
    """Captures the microphone to a file as 16 kHz mono PCM.

    Captured blocks are also handed to every subscribed listener, which is how
    the live transcriber receives audio while the recording is in progress.
    """

    def __init__(self, device_index: int | None = None):
        self.device_index = device_index
        self._recording = False
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._listeners: list[PcmListener] = []
        self._target_path: Path | None = None
        self._wav_path: Path | None = None
        self._wf: wave.Wave_write | None = None

    def subscribe(self, listener: PcmListener):
        self._listeners.append(listener)

    def _find_input_device(self) -> dict | None:
        try:
            sd = _import_sounddevice()
            info = sd.query_devices(self.device_index, kind="input")
        except (OSError, ValueError) as e:
            logger.warning("No se encontro microfono: %s", e)
            return None
        if int(info["max_input_channels"]) < 1:
            return None
        return dict(info)

    def has_permission(self) -> bool:
        return self._find_input_device() is not None

    def _record_stream(self, device_info: dict):
        sd = _import_sounddevice()
        sample_rate = int(device_info["default_samplerate"])
        channels = max(1, min(2, int(device_info["max_input_channels"])))
        chunk_size = max(1, int(sample_rate * CHUNK_DURATION_MS / 1000))
        target_rate = config.SAMPLE_RATE

        try:
            stream = sd.RawInputStream(
                samplerate=sample_rate,
                channels=channels,
                dtype="int16",
                device=self.device_index,
                blocksize=chunk_size,
            )
            stream.start()
        except sd.PortAudioError as e:
            logger.error("No se pudo abrir stream para %s: %s", device_info["name"], e)
            self._recording = False
            return

        try:
            while self._recording:
                try:
                    raw, _overflowed = stream.read(chunk_size)
                except sd.PortAudioError as e:
                    logger.warning("Error leyendo el microfono: %s", e)
                    continue

                data = to_mono(bytes(raw), channels)
                data = resample(data, sample_rate, target_rate)
                if not data:
                    continue

                self._wf.writeframes(data)
                for listener in self._listeners:
                    listener(data)
        finally:
            stream.stop()
            stream.close()

    def start(self, path: Path):
        with self._lock:
            if self._recording:
                raise RuntimeError("Ya hay una grabacion en curso")

            device_info = self._find_input_device()
            if device_info is None:
                raise RuntimeError("No se encontro ningun dispositivo de audio")

            self._target_path = Path(path)
            self._target_path.parent.mkdir(parents=True, exist_ok=True)
            self._wav_path = self._target_path.with_suffix(".wav")

            wf = wave.open(str(self._wav_path), "wb")
            wf.setnchannels(config.CHANNELS)
            wf.setsampwidth(2)
            wf.setframerate(config.SAMPLE_RATE)
            self._wf = wf

            logger.info("Microfono: %s", device_info["name"])
            self._recording = True
            self._thread = threading.Thread(
                target=self._record_stream, args=(device_info,), daemon=True,
            )
            self._thread.start()

    def stop(self) -> dict:
        with self._lock:
            if self._thread is None:
                raise RuntimeError("No hay grabacion en curso")
            self._recording = False
            thread, self._thread = self._thread, None

        thread.join(timeout=5)
        if self._wf is not None:
            self._wf.close()
            self._wf = None

        wav_path, target_path = self._wav_path, self._target_path
        duration_secs = wav_duration_secs(wav_path)

        if target_path != wav_path:
            try:
                encode_audio(wav_path, target_path)
            except (CouldntEncodeError, OSError, IndexError) as e:
                # pydub lanza IndexError con WAV vacios
                logger.error("Error convirtiendo audio, se conserva el WAV: %s", e)
                target_path = wav_path
            else:
                wav_path.unlink(missing_ok=True)

        self._wav_path = None
        self._target_path = None
        return {"path": str(target_path), "duration_secs": duration_secs}

    def is_recording(self) -> bool:
        return self._recording

    def terminate(self):
        if self._thread is not None:
            self.stop()
