"""Picks evenly spaced samples from an audio stream for drawing waveforms."""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Protocol


class AudioSamplingError(RuntimeError):
    """The audio stream could not be sought or read."""


class _AudioStream(Protocol):
    def __len__(self) -> int: ...

    def position(self) -> int: ...

    def seek(self, position: int) -> None: ...

    def read(self, count: int) -> Sequence[Sequence[float]]: ...


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def fast_sample_audio(stream: _AudioStream, num_samples: int) -> list[tuple[float, float]]:
    """Return up to ``num_samples`` stereo samples spread evenly over the stream.

    Fewer are returned if the stream ends early.
    """
    if num_samples < 0:
        raise ValueError("number of samples must not be negative")
    if num_samples == 0:
        return []

    every_nth = _round_half_away(len(stream) / num_samples)
    samples: list[tuple[float, float]] = []
    for i in range(num_samples):
        position = i * every_nth
        if stream.position() != position:
            try:
                stream.seek(position)
            except Exception as exc:
                raise AudioSamplingError(f"fast-sample: could not seek: {exc}") from exc
        try:
            chunk = stream.read(1)
        except Exception as exc:
            raise AudioSamplingError(f"fast-sample: could not stream: {exc}") from exc
        if not chunk:
            break
        left, right = chunk[0]
        samples.append((left, right))
    return samples