"""
simpol — Field Transformers and the Base Emitter
==================================================

A simulated source of radiation is a linear chain of nodes.  The leaf
(``Mode``) draws a random field with a prescribed population mean Stokes
vector; every other node (``FieldTransformer``) wraps exactly one source
node and modifies each field drawn through it.

Each node supplies two things:

1. a random-draw path  -- ``get_field(rng)`` / ``get_stokes(rng)``
2. exact closed-form moments -- ``get_mean()``, ``get_covariance()``,
   ``get_crosscovariance(lag)``

and the closed forms must compose through arbitrary nesting.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .pauli import (detect, instance_covariance, jones_root,
                    stokes_to_coherency)
from .random_source import RandomSource


class FieldTransformer:
    """Node that applies an effect to fields drawn from its source.

    Parameters
    ----------
    source : the wrapped node (exclusively owned)
    """

    def __init__(self, source: Optional[FieldTransformer] = None):
        self.source = source

    def get_source(self) -> 'FieldTransformer':
        return self.source

    def transform(self, field: NDArray, rng: RandomSource) -> NDArray:
        """Apply this node's effect to an already-drawn field."""
        return field

    def get_field(self, rng: RandomSource) -> NDArray:
        """Draw one field instance through the whole chain."""
        return self.transform(self.source.get_field(rng), rng)

    def get_stokes(self, rng: RandomSource) -> NDArray:
        """Draw and detect one field instance."""
        return detect(self.get_field(rng))

    def get_mean(self) -> NDArray:
        return self.source.get_mean()

    def get_covariance(self) -> NDArray:
        return self.source.get_covariance()

    def get_crosscovariance(self, lag: int) -> NDArray:
        """Stokes cross-covariance at the given lag; zero for memoryless nodes."""
        return np.zeros((4, 4))


class Mode(FieldTransformer):
    """Leaf emitter: circular complex Gaussian field with a given mean Stokes.

    The field is e = J z, where J is the Hermitian square root of the
    coherency matrix and z a pair of unit-variance complex normal
    deviates.  The detected Stokes parameters of one instance have mean
    equal to the configured population mean and the single-instance
    detector-noise covariance of ``pauli.instance_covariance``.

    No validation is performed here; a realizable mean is assumed.
    """

    def __init__(self, stokes: ArrayLike = (1.0, 0.0, 0.0, 0.0)):
        super().__init__(None)
        self.set_stokes(stokes)

    def set_stokes(self, stokes: ArrayLike) -> None:
        self.mean = np.array(stokes, dtype=float)
        self.jones = jones_root(stokes_to_coherency(self.mean))
        self._covariance = instance_covariance(self.mean)

    def get_field(self, rng: RandomSource) -> NDArray:
        return self.jones @ rng.complex_normal()

    def get_mean(self) -> NDArray:
        return self.mean.copy()

    def get_covariance(self) -> NDArray:
        return self._covariance.copy()
