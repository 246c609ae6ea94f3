from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from delivery_forecast.forecasting.domain.models import SamplePicker


@dataclass
class GeneratorSamplePicker(SamplePicker):
    """Uniform picks with replacement backed by a numpy Generator.

    Uniform variates are drawn in blocks; a pick costs one multiply and an
    index instead of a Generator call.
    """

    rng: np.random.Generator
    block_size: int = 4096
    _buffer: np.ndarray = field(default_factory=lambda: np.empty(0), init=False, repr=False)
    _pos: int = field(default=0, init=False, repr=False)

    @classmethod
    def from_seed(cls, seed: int | None) -> "GeneratorSamplePicker":
        return cls(rng=np.random.default_rng(seed))

    def pick(self, values: Sequence[int]) -> int:
        if not values:
            raise ValueError("Cannot pick from an empty sample")
        if self._pos >= self._buffer.size:
            self._buffer = self.rng.random(self.block_size)
            self._pos = 0
        u = float(self._buffer[self._pos])
        self._pos += 1
        return int(values[min(int(u * len(values)), len(values) - 1)])


@dataclass
class ScriptedSamplePicker(SamplePicker):
    """Replays a fixed sequence of sample indices, cycling when exhausted."""

    indices: Sequence[int]
    _pos: int = field(default=0, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.indices:
            raise ValueError("ScriptedSamplePicker needs at least one index")

    def pick(self, values: Sequence[int]) -> int:
        idx = self.indices[self._pos % len(self.indices)]
        self._pos += 1
        return int(values[idx % len(values)])
