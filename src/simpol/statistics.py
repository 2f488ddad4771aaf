"""
simpol — Streaming Statistics Engine
======================================

Draws ``nsamp`` Stokes samples from a ``Sample`` and accumulates

  - the running sum and outer-product sum of the Stokes vector
  - the running mean degree of polarization
  - (optional) lag cross-products from a fixed-capacity ring buffer
  - (optional) coherency-matrix sums and direct self-products

then normalizes them and sets the measured moments beside the analytic
predictions of the sample.  All accumulators are preallocated and updated
in place; the only state carried between iterations lives here.

Covariance centering
--------------------
The outer-product sum is divided by the count *before* the reference outer
product is subtracted:

    covariance = totsq / n - outer(ref, ref)

with ``ref`` either the measured mean (default) or the known population
mean.  The two orders of operation are not numerically equivalent on a
finite sample, so this sequence is kept exactly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .pauli import (coherency_covariance, hermitian_eigen,
                    stokes_to_coherency)
from .random_source import RandomSource
from .sample import Sample

logger = logging.getLogger(__name__)


@dataclass
class StatisticsResult:
    """Measured and expected moments of one run.

    Measured fields are None when only the theoretical predictions were
    requested (``nsamp == 0``); lag and coherency fields are None unless
    the corresponding analysis was enabled.
    """
    count: int
    expected_mean: NDArray
    expected_covariance: NDArray
    mean: Optional[NDArray] = None
    covariance: Optional[NDArray] = None
    mean_dop: Optional[float] = None
    # lag analysis
    nlag: int = 0
    count_lag: int = 0
    acf: Optional[NDArray] = None                     # (nlag, 4, 4)
    expected_acf: Optional[NDArray] = None            # (nlag, 4, 4)
    # coherency-matrix analysis
    rho_mean: Optional[NDArray] = None                # (2, 2)
    rho_square: Optional[NDArray] = None              # (4, 4)
    rho_covariance: Optional[NDArray] = None          # (4, 4)
    candidate: Optional[NDArray] = None               # (4, 4)
    eigenvalues: Optional[NDArray] = None
    eigenvectors: Optional[NDArray] = None

    @property
    def simulated(self) -> bool:
        return self.mean is not None

    @property
    def modulation_index(self) -> float:
        """sqrt(var(I)) / <I> of the measured samples."""
        return float(np.sqrt(self.covariance[0, 0]) / self.mean[0])


class StatisticsEngine:
    """Accumulate moments of a stream of Stokes samples.

    Parameters
    ----------
    sample : source of Stokes samples (exclusively owned)
    nlag : number of lags (0 disables the lag analysis)
    rho_stats : accumulate coherency-matrix statistics
    subtract_population_mean : centre the covariance on
        ``population_mean`` instead of the measured mean
    population_mean : known population mean Stokes vector
    sample_hook : optional callable(index, stokes) invoked per sample
    """

    def __init__(self, sample: Sample,
                 nlag: int = 0,
                 rho_stats: bool = False,
                 subtract_population_mean: bool = False,
                 population_mean: Optional[ArrayLike] = None,
                 sample_hook: Optional[Callable[[int, NDArray], None]] = None):
        self.sample = sample
        self.nlag = int(nlag)
        self.rho_stats = rho_stats
        self.subtract_population_mean = subtract_population_mean
        if population_mean is None:
            population_mean = sample.get_mean()
        self.population_mean = np.array(population_mean, dtype=float)
        self.sample_hook = sample_hook

    # ------------------------------------------------------------
    # Analytic predictions
    # ------------------------------------------------------------

    def expected_crosscovariance(self) -> NDArray:
        result = np.zeros((self.nlag, 4, 4))
        for ilag in range(self.nlag):
            result[ilag] = self.sample.get_crosscovariance(ilag)
        return result

    def predict(self) -> StatisticsResult:
        """Theoretical predictions only; nothing is drawn."""
        result = StatisticsResult(
            count=0,
            expected_mean=self.sample.get_mean(),
            expected_covariance=self.sample.get_covariance(),
            nlag=self.nlag,
        )
        if self.nlag:
            result.expected_acf = self.expected_crosscovariance()
        if self.rho_stats:
            self._decompose(result)
        return result

    def _decompose(self, result: StatisticsResult) -> None:
        result.candidate = coherency_covariance(result.expected_covariance)
        result.eigenvalues, result.eigenvectors = hermitian_eigen(result.candidate)

    # ------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------

    def run(self, nsamp: int, rng: RandomSource) -> StatisticsResult:
        """Draw ``nsamp`` samples and return measured vs expected moments.

        With ``nsamp < 1`` nothing is drawn and only the predictions are
        returned, as for ``predict()``.
        """
        nsamp = int(nsamp)
        if nsamp < 1:
            return self.predict()
        nlag = self.nlag

        ntot = 0
        ntot_lag = 0
        totp = 0.0
        tot = np.zeros(4)
        totsq = np.zeros((4, 4))
        work = np.zeros((4, 4))

        if nlag:
            samples = np.zeros((nlag, 4))
            acf = np.zeros((nlag, 4, 4))
            lag_work = np.zeros((nlag, 4, 4))
            lag_offsets = np.arange(nlag)
        current_sample = 0

        if self.rho_stats:
            tot_rho = np.zeros((2, 2), dtype=complex)
            totsq_rho = np.zeros((4, 4), dtype=complex)

        logger.info(f"Simulating {nsamp:,} Stokes samples "
                    f"(sample_size={self.sample.sample_size}, nlag={nlag})")

        for idat in range(nsamp):
            stokes = self.sample.get_Stokes(rng)

            if self.sample_hook is not None:
                self.sample_hook(idat, stokes)

            tot += stokes
            np.outer(stokes, stokes, out=work)
            totsq += work
            ntot += 1

            if nlag:
                samples[current_sample] = stokes
                current_sample += 1
                if current_sample == nlag:
                    current_sample = 0

                if ntot >= nlag:
                    # oldest retained sample against each later one
                    Sj = samples[current_sample]
                    Si = samples[(current_sample + lag_offsets) % nlag]
                    np.multiply(Si[:, :, None], Sj[None, None, :], out=lag_work)
                    acf += lag_work
                    ntot_lag += 1

            psq = stokes[1] ** 2 + stokes[2] ** 2 + stokes[3] ** 2
            totp += np.sqrt(psq) / stokes[0]

            if self.rho_stats:
                rho = stokes_to_coherency(stokes)
                tot_rho += rho
                totsq_rho += np.kron(rho, rho)

        totp /= ntot
        tot /= ntot
        totsq /= ntot

        if self.subtract_population_mean:
            totsq -= np.outer(self.population_mean, self.population_mean)
        else:
            totsq -= np.outer(tot, tot)

        result = StatisticsResult(
            count=ntot,
            expected_mean=self.sample.get_mean(),
            expected_covariance=self.sample.get_covariance(),
            mean=tot,
            covariance=totsq,
            mean_dop=float(totp),
            nlag=nlag,
        )

        if nlag:
            if ntot_lag:
                acf /= ntot_lag
                acf -= np.outer(tot, tot)
            else:
                # fewer samples than lags: nothing measured
                acf[:] = np.nan
            result.count_lag = ntot_lag
            result.acf = acf
            result.expected_acf = self.expected_crosscovariance()

        if self.rho_stats:
            tot_rho /= nsamp
            totsq_rho /= nsamp
            result.rho_mean = tot_rho
            result.rho_square = totsq_rho.copy()
            result.rho_covariance = totsq_rho - np.kron(tot_rho, tot_rho)
            self._decompose(result)

        return result
