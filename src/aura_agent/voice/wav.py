"""PCM WAV encoding and level metering."""

from __future__ import annotations

import io
import math
import wave
from collections.abc import Sequence

import numpy as np

SILENCE_DB = -math.inf


def encode_wav(channels: Sequence[Sequence[float]] | np.ndarray, sample_rate: int) -> bytes:
    """Encode float samples in [-1, 1] as 16-bit little-endian PCM WAV.

    `channels` holds one sample sequence per channel; multi-channel audio is
    interleaved frame by frame. Channels of unequal length are truncated to
    the shortest. The output carries the standard 44-byte RIFF/WAVE header.
    """

    if sample_rate <= 0:
        raise ValueError("sample_rate must be positive")

    if isinstance(channels, np.ndarray):
        data = np.atleast_2d(channels).astype(np.float64)
    else:
        if not channels:
            raise ValueError("at least one channel is required")
        length = min(len(channel) for channel in channels)
        data = np.stack([np.asarray(channel[:length], dtype=np.float64) for channel in channels])

    clipped = np.clip(data, -1.0, 1.0)
    pcm = np.where(clipped < 0, clipped * 0x8000, clipped * 0x7FFF).astype("<i2")
    frames = pcm.T.reshape(-1)

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(pcm.shape[0])
        wav_file.setsampwidth(2)
        wav_file.setframerate(int(sample_rate))
        wav_file.writeframes(frames.tobytes())
    return buffer.getvalue()


def level_db_from_samples(samples: Sequence[float] | np.ndarray) -> float:
    """RMS level of float samples in dBFS; silence is `-inf`."""

    data = np.asarray(samples, dtype=np.float64)
    if data.size == 0:
        return SILENCE_DB
    rms = float(np.sqrt(np.mean(np.square(data))))
    return 20.0 * math.log10(rms) if rms > 0 else SILENCE_DB


def level_db_from_spectrum(bins: Sequence[int] | np.ndarray) -> float:
    """Average magnitude of 0..255 analyser bins, in dB relative to full scale."""

    data = np.asarray(bins, dtype=np.float64)
    if data.size == 0:
        return SILENCE_DB
    average = float(np.mean(data))
    return 20.0 * math.log10(average / 255.0) if average > 0 else SILENCE_DB
