"""
simpol — Stokes Samples and Dual-Mode Combinations
====================================================

A ``Sample`` is what the detector reports: the average of ``sample_size``
independently drawn field instances (finite integration time).  Its
analytic moments follow from those of one instance,

    mean       = instance mean
    covariance = instance covariance / sample_size

while the cross-covariance between samples is passed through unchanged.

``Single`` wraps one field-transformer chain.  The dual-mode combinations
own two independent chains A and B and differ in how they are mixed:

=============  ===========================================================
Class          One instance
=============  ===========================================================
Superposed     detect(e_A + e_B)                  (interference terms)
Composite(p)   detect(e_A) with probability p, else detect(e_B)
Disjoint(p)    first round(p n) instances of each sample from A, rest B
Coherent(c)    detect(e_A + c e_B)
=============  ===========================================================
"""

from __future__ import annotations

import warnings
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from .modes import FieldTransformer, Mode
from .pauli import detect, interference_covariance
from .random_source import RandomSource


# ============================================================
# SECTION 1: Sample base and single-mode sample
# ============================================================

class Sample:
    """Detector-integrated Stokes sample.

    Subclasses supply one instance (``get_instance``) and its analytic
    mean and covariance; integration over ``sample_size`` instances is
    handled here.
    """

    def __init__(self, sample_size: int = 1):
        self.sample_size = sample_size

    def get_instance(self, rng: RandomSource) -> NDArray:
        """Stokes parameters of one detected field instance."""
        raise NotImplementedError

    def get_Stokes(self, rng: RandomSource) -> NDArray:
        """Average of ``sample_size`` independent instances."""
        result = np.zeros(4)
        for _ in range(self.sample_size):
            result += self.get_instance(rng)
        result /= self.sample_size
        return result

    def get_mean(self) -> NDArray:
        raise NotImplementedError

    def get_instance_covariance(self) -> NDArray:
        raise NotImplementedError

    def get_covariance(self) -> NDArray:
        return self.get_instance_covariance() / self.sample_size

    def get_crosscovariance(self, lag: int) -> NDArray:
        return np.zeros((4, 4))


class Single(Sample):
    """Sample drawn from one field-transformer chain."""

    def __init__(self, source: FieldTransformer, sample_size: int = 1):
        super().__init__(sample_size)
        self.source = source

    def get_instance(self, rng: RandomSource) -> NDArray:
        return self.source.get_stokes(rng)

    def get_mean(self) -> NDArray:
        return self.source.get_mean()

    def get_instance_covariance(self) -> NDArray:
        return self.source.get_covariance()

    def get_crosscovariance(self, lag: int) -> NDArray:
        return self.source.get_crosscovariance(lag)


# ============================================================
# SECTION 2: Dual-mode combinations
# ============================================================

class Combination(Sample):
    """Sample built from two independent chains A and B.

    Both chains default to an unpolarized unit-intensity ``Mode``; they
    are normally replaced by ``ModeSetup.setup_mode``.
    """

    def __init__(self, A: Optional[FieldTransformer] = None,
                 B: Optional[FieldTransformer] = None, sample_size: int = 1):
        super().__init__(sample_size)
        self.A = A if A is not None else Mode()
        self.B = B if B is not None else Mode()


class Superposed(Combination):
    """Coherent field-level sum of the two modes before detection."""

    def get_instance(self, rng: RandomSource) -> NDArray:
        return detect(self.A.get_field(rng) + self.B.get_field(rng))

    def get_mean(self) -> NDArray:
        return self.A.get_mean() + self.B.get_mean()

    def get_instance_covariance(self) -> NDArray:
        return (self.A.get_covariance() + self.B.get_covariance()
                + interference_covariance(self.A.get_mean(),
                                          self.B.get_mean()))

    def get_crosscovariance(self, lag: int) -> NDArray:
        return self.A.get_crosscovariance(lag) + self.B.get_crosscovariance(lag)


class Composite(Combination):
    """Each instance drawn from A with probability p, otherwise from B."""

    def __init__(self, fraction: float, A: Optional[FieldTransformer] = None,
                 B: Optional[FieldTransformer] = None, sample_size: int = 1):
        super().__init__(A, B, sample_size)
        self.A_fraction = fraction

    def get_instance(self, rng: RandomSource) -> NDArray:
        if rng.uniform() < self.A_fraction:
            return self.A.get_stokes(rng)
        return self.B.get_stokes(rng)

    def get_mean(self) -> NDArray:
        p = self.A_fraction
        return p * self.A.get_mean() + (1.0 - p) * self.B.get_mean()

    def get_instance_covariance(self) -> NDArray:
        p = self.A_fraction
        diff = self.A.get_mean() - self.B.get_mean()
        return (p * self.A.get_covariance()
                + (1.0 - p) * self.B.get_covariance()
                + p * (1.0 - p) * np.outer(diff, diff))


class Disjoint(Combination):
    """Fixed partition of each sample: n_A instances from A, the rest from B.

    n_A = round(p * sample_size) is the same for every sample, so there is
    no between-mode variance.  The analytic moments use the realised
    fraction f = n_A / sample_size, which equals p whenever
    p * sample_size is a whole number.
    """

    def __init__(self, fraction: float, A: Optional[FieldTransformer] = None,
                 B: Optional[FieldTransformer] = None, sample_size: int = 1):
        super().__init__(A, B, sample_size)
        self.A_fraction = fraction

    def get_count_A(self) -> int:
        return int(np.floor(self.A_fraction * self.sample_size + 0.5))

    def get_effective_fraction(self) -> float:
        if self.sample_size == 0:
            return float('nan')
        return self.get_count_A() / self.sample_size

    def check_partition(self) -> None:
        """Warn when p * sample_size is not a whole number of instances."""
        exact = self.A_fraction * self.sample_size
        if abs(exact - self.get_count_A()) > 1e-9:
            warnings.warn(
                f"Disjoint fraction {self.A_fraction} does not partition "
                f"{self.sample_size} instances evenly; using "
                f"{self.get_count_A()} instances from mode A.",
                stacklevel=2,
            )

    def get_Stokes(self, rng: RandomSource) -> NDArray:
        n_A = self.get_count_A()
        result = np.zeros(4)
        for i in range(self.sample_size):
            if i < n_A:
                result += self.A.get_stokes(rng)
            else:
                result += self.B.get_stokes(rng)
        result /= self.sample_size
        return result

    def get_mean(self) -> NDArray:
        f = self.get_effective_fraction()
        return f * self.A.get_mean() + (1.0 - f) * self.B.get_mean()

    def get_instance_covariance(self) -> NDArray:
        f = self.get_effective_fraction()
        return f * self.A.get_covariance() + (1.0 - f) * self.B.get_covariance()


class Coherent(Combination):
    """Field-level sum e_A + c e_B, mode B weighted by the coupling c."""

    def __init__(self, coupling: float, A: Optional[FieldTransformer] = None,
                 B: Optional[FieldTransformer] = None, sample_size: int = 1):
        super().__init__(A, B, sample_size)
        self.coupling = coupling

    def get_instance(self, rng: RandomSource) -> NDArray:
        return detect(self.A.get_field(rng) + self.coupling * self.B.get_field(rng))

    def get_mean(self) -> NDArray:
        c2 = self.coupling ** 2
        return self.A.get_mean() + c2 * self.B.get_mean()

    def get_instance_covariance(self) -> NDArray:
        c2 = self.coupling ** 2
        return (self.A.get_covariance()
                + c2 * c2 * self.B.get_covariance()
                + c2 * interference_covariance(self.A.get_mean(),
                                               self.B.get_mean()))

    def get_crosscovariance(self, lag: int) -> NDArray:
        c2 = self.coupling ** 2
        return (self.A.get_crosscovariance(lag)
                + c2 * c2 * self.B.get_crosscovariance(lag))
