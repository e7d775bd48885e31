import struct
import wave
from pathlib import Path

from pydub import AudioSegment


def to_mono(data: bytes, channels: int) -> bytes:
    """Promedia los canales de un bloque PCM 16-bit intercalado."""
    if channels <= 1:
        return data
    samples = struct.unpack(f"<{len(data) // 2}h", data)
    mono = []
    for i in range(0, len(samples) - channels + 1, channels):
        frame_samples = samples[i : i + channels]
        mono.append(int(sum(frame_samples) / channels))
    return struct.pack(f"<{len(mono)}h", *mono)


def resample(data: bytes, source_rate: int, target_rate: int) -> bytes:
    """Remuestreo por vecino mas cercano de un bloque PCM 16-bit mono."""
    if source_rate == target_rate or not data:
        return data
    samples = struct.unpack(f"<{len(data) // 2}h", data)
    ratio = target_rate / source_rate
    new_len = int(len(samples) * ratio)
    if new_len <= 0:
        return b""
    resampled = []
    for i in range(new_len):
        src_idx = min(int(i / ratio), len(samples) - 1)
        resampled.append(samples[src_idx])
    return struct.pack(f"<{len(resampled)}h", *resampled)


def wav_duration_secs(wav_path: Path) -> int:
    if not wav_path.exists() or wav_path.stat().st_size < 44:
        return 0
    try:
        with wave.open(str(wav_path), "rb") as wf:
            return wf.getnframes() // wf.getframerate()
    except (wave.Error, EOFError):
        return 0


def encode_audio(wav_path: Path, target_path: Path, bitrate: str = "128k"):
    """Convierte el WAV grabado al formato de la extension destino usando pydub/ffmpeg."""
    audio = AudioSegment.from_wav(str(wav_path))
    audio.export(str(target_path), format=target_path.suffix.lstrip("."), bitrate=bitrate)
