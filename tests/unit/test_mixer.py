"""Tests for the PCM helpers used by the recorder."""

from __future__ import annotations

import struct
import wave
from pathlib import Path

from recorder.mixer import resample, to_mono, wav_duration_secs


def pcm(*samples: int) -> bytes:
    return struct.pack(f"<{len(samples)}h", *samples)


def samples_of(data: bytes) -> list:
    return list(struct.unpack(f"<{len(data) // 2}h", data))


class TestToMono:

    def test_mono_is_unchanged(self) -> None:
        data = pcm(1, 2, 3)
        assert to_mono(data, 1) == data

    def test_stereo_is_averaged(self) -> None:
        assert samples_of(to_mono(pcm(100, 200, -50, 50), 2)) == [150, 0]


class TestResample:

    def test_same_rate(self) -> None:
        data = pcm(1, 2, 3, 4)
        assert resample(data, 16000, 16000) == data

    def test_downsample_by_three(self) -> None:
        data = pcm(*range(9))
        assert samples_of(resample(data, 48000, 16000)) == [0, 3, 6]

    def test_upsample_repeats(self) -> None:
        assert samples_of(resample(pcm(7, 9), 8000, 16000)) == [7, 7, 9, 9]

    def test_empty(self) -> None:
        assert resample(b"", 44100, 16000) == b""


class TestDuration:

    def test_missing_file(self, tmp_path: Path) -> None:
        assert wav_duration_secs(tmp_path / "nope.wav") == 0

    def test_two_seconds(self, tmp_path: Path) -> None:
        path = tmp_path / "two.wav"
        with wave.open(str(path), "wb") as wf:
            wf.setnchannels(1)
            wf.setsampwidth(2)
            wf.setframerate(16000)
            wf.writeframes(b"\x00\x00" * 32000)

        assert wav_duration_secs(path) == 2
