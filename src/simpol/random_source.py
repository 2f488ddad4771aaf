"""
simpol — Random Source
========================

One explicit random-number context per run.  Every draw in the
simulation (field deviates, modulation factors, mode selection) takes a
``RandomSource`` argument; nothing reaches for a hidden global generator.

The seed is always recorded: when none is given, fresh entropy is drawn
from the OS via ``numpy.random.SeedSequence`` and kept in ``.seed`` so the
run can be repeated exactly.
"""

from __future__ import annotations

from typing import List, Union

import numpy as np
from numpy.typing import NDArray

_SQRT_HALF = np.sqrt(0.5)

SeedLike = Union[None, int, np.random.SeedSequence]


class RandomSource:
    """Standard-normal deviates served from a pre-drawn block.

    Drawing scalars one at a time from ``numpy.random.Generator`` is
    dominated by call overhead, so normals are generated ``block_size``
    at a time and handed out sequentially.  The sequence of deviates is a
    deterministic function of the seed.

    Parameters
    ----------
    seed : int, SeedSequence or None
    block_size : number of normal deviates generated per refill
    """

    def __init__(self, seed: SeedLike = None, block_size: int = 65536):
        if isinstance(seed, np.random.SeedSequence):
            self.seed_sequence = seed
        else:
            self.seed_sequence = np.random.SeedSequence(seed)
        self.seed = self.seed_sequence.entropy
        self.generator = np.random.default_rng(self.seed_sequence)
        self.block_size = int(block_size)
        self._block: NDArray = np.empty(0)
        self._next = 0

    def _refill(self) -> None:
        self._block = self.generator.standard_normal(self.block_size)
        self._next = 0

    def normal(self) -> float:
        """One standard-normal deviate."""
        if self._next >= self._block.shape[0]:
            self._refill()
        value = self._block[self._next]
        self._next += 1
        return float(value)

    def complex_normal(self) -> NDArray:
        """Two independent circular complex normal deviates, E|z|^2 = 1."""
        if self._next + 4 > self._block.shape[0]:
            # keep the 4 deviates of one spinor contiguous
            self._refill()
        x = self._block[self._next:self._next + 4]
        self._next += 4
        return np.array([complex(x[0], x[1]), complex(x[2], x[3])]) * _SQRT_HALF

    def uniform(self) -> float:
        """One deviate uniform on [0, 1)."""
        return float(self.generator.random())

    def spawn(self, n: int) -> List['RandomSource']:
        """n statistically independent child sources (disjoint sub-streams)."""
        return [RandomSource(child, self.block_size)
                for child in self.seed_sequence.spawn(n)]

    def __repr__(self) -> str:
        return f"RandomSource(seed={self.seed})"
