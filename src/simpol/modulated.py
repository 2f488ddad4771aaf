"""
simpol — Amplitude-Modulated Modes
====================================

Decorators that scale the intensity of every field drawn through them by
a random positive factor m (the field amplitude by sqrt(m)).

For a source with mean Ms and covariance Cs, a modulation with mean mu and
variance var gives, by the law of total variance,

    mean       = mu * Ms
    covariance = Cs * (mu^2 + var) + var * outer(Ms, Ms)

=========================  ==========================================
Class                      Modulation factor
=========================  ==========================================
LognormalMode              exp(sigma (z - sigma/2)), unit mean
BoxcarModulatedMode        running mean of the last n factors
SquareModulatedMode        one factor held for ``width`` instances
=========================  ==========================================

Reference: van Straten & Tiburzi (2017), Section 3 (amplitude modulation).
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional

import numpy as np
from numpy.typing import NDArray

from .modes import FieldTransformer
from .random_source import RandomSource

logger = logging.getLogger(__name__)


class ModulationMonitor:
    """Optional diagnostic hook that accumulates drawn modulation factors.

    Attach to a ``ModulatedMode`` to cross-check the analytic mean and
    variance against the factors actually drawn; the comparison is
    logged at DEBUG level whenever the mode's covariance is requested.
    """

    def __init__(self, name: str = 'modulation'):
        self.name = name
        self.total = 0.0
        self.total_sq = 0.0
        self.count = 0

    def record(self, value: float) -> None:
        self.total += value
        self.total_sq += value * value
        self.count += 1

    @property
    def mean(self) -> float:
        return self.total / self.count

    @property
    def variance(self) -> float:
        mean = self.mean
        return self.total_sq / self.count - mean * mean

    def report(self, expected_mean: float, expected_variance: float) -> None:
        if not self.count:
            return
        logger.debug(f"{self.name}: expected mean={expected_mean:.6g} "
                     f"var={expected_variance:.6g}; measured mean={self.mean:.6g} "
                     f"var={self.variance:.6g} over {self.count:,} draws")


class ModulatedMode(FieldTransformer):
    """Base class: intensity modulation by a random positive scalar."""

    def __init__(self, source: FieldTransformer,
                 monitor: Optional[ModulationMonitor] = None):
        super().__init__(source)
        self.monitor = monitor

    def modulation(self, rng: RandomSource) -> float:
        """Return a random scalar modulation factor."""
        raise NotImplementedError

    def get_mod_mean(self) -> float:
        raise NotImplementedError

    def get_mod_variance(self) -> float:
        raise NotImplementedError

    def transform(self, field: NDArray, rng: RandomSource) -> NDArray:
        mod = self.modulation(rng)
        if self.monitor is not None:
            self.monitor.record(mod)
        return math.sqrt(mod) * field

    def get_mean(self) -> NDArray:
        return self.get_mod_mean() * self.source.get_mean()

    def get_covariance(self) -> NDArray:
        mean = self.get_mod_mean()
        var = self.get_mod_variance()

        if self.monitor is not None:
            self.monitor.report(mean, var)

        source_mean = self.source.get_mean()
        C = self.source.get_covariance() * (mean * mean + var)
        return C + np.outer(source_mean, source_mean) * var


class LognormalMode(ModulatedMode):
    """Log-normal modulation with unit mean and modulation index beta.

    sigma = sqrt(ln(beta^2 + 1)) is the standard deviation of ln(m); the
    factor exp(sigma (z - sigma/2)) then has mean 1 and variance
    exp(sigma^2) - 1 = beta^2.
    """

    def __init__(self, source: FieldTransformer, beta: float,
                 monitor: Optional[ModulationMonitor] = None):
        super().__init__(source, monitor)
        self.set_beta(beta)

    def set_beta(self, beta: float) -> None:
        self.log_sigma = math.sqrt(math.log(beta * beta + 1.0))

    def get_beta(self) -> float:
        return math.sqrt(self.get_mod_variance())

    def modulation(self, rng: RandomSource) -> float:
        return math.exp(self.log_sigma * (rng.normal() - 0.5 * self.log_sigma))

    def get_mod_mean(self) -> float:
        return 1.0

    def get_mod_variance(self) -> float:
        return math.exp(self.log_sigma * self.log_sigma) - 1.0


class BoxcarModulatedMode(ModulatedMode):
    """Running mean of the last n factors drawn from another modulation.

    The wrapped modulation only supplies factors; fields come from its
    source.  On the first call the history is filled with n-1 fresh
    factors before the first smoothed value is returned.
    """

    def __init__(self, mod: ModulatedMode, n: int,
                 monitor: Optional[ModulationMonitor] = None):
        super().__init__(mod.get_source(), monitor)
        self.mod = mod
        self.smooth = int(n)
        self.instances: List[float] = []
        self.current = 0

    def _setup(self, rng: RandomSource) -> None:
        self.current = 0
        self.instances = [0.0] * self.smooth
        for i in range(1, self.smooth):
            self.instances[i] = self.mod.modulation(rng)

    def modulation(self, rng: RandomSource) -> float:
        if len(self.instances) < self.smooth:
            self._setup(rng)

        self.instances[self.current] = self.mod.modulation(rng)
        self.current = (self.current + 1) % self.smooth

        return sum(self.instances) / self.smooth

    def get_mod_mean(self) -> float:
        return self.mod.get_mod_mean()

    def get_mod_variance(self) -> float:
        return self.mod.get_mod_variance() / self.smooth

    def get_crosscovariance(self, lag: int) -> NDArray:
        """Triangular decay: overlap of two windows separated by lag."""
        if lag >= self.smooth:
            return np.zeros((4, 4))

        source_mean = self.source.get_mean()
        result = np.outer(source_mean, source_mean)
        return result * (float(self.smooth - lag) / self.smooth
                         * self.get_mod_variance())


class SquareModulatedMode(ModulatedMode):
    """Piecewise-constant modulation: one factor held for ``width`` calls."""

    def __init__(self, mod: ModulatedMode, width: int,
                 monitor: Optional[ModulationMonitor] = None):
        super().__init__(mod.get_source(), monitor)
        self.mod = mod
        self.width = int(width)
        self.current = self.width
        self.value = 0.0

    def modulation(self, rng: RandomSource) -> float:
        if self.current == self.width:
            self.value = self.mod.modulation(rng)
            self.current = 0

        self.current += 1
        return self.value

    def get_mod_mean(self) -> float:
        return self.mod.get_mod_mean()

    def get_mod_variance(self) -> float:
        return self.mod.get_mod_variance()

    def get_crosscovariance(self, lag: int) -> NDArray:
        """Flat within one pulse width, zero beyond it."""
        if lag >= self.width:
            return np.zeros((4, 4))

        source_mean = self.source.get_mean()
        return np.outer(source_mean, source_mean) * self.get_mod_variance()
