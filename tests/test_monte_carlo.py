"""
simpol — Monte Carlo Test Suite
=================================

Statistics engine checks: exact accumulator arithmetic on hand-made
sample streams, then end-to-end runs compared against the analytic
predictions within several standard errors (fixed seeds).

Run with:
    pytest tests/test_monte_carlo.py -v
"""

import math
import os

import numpy as np
import pytest

from simpol.sample import Sample


class StubSample(Sample):
    """Replays a fixed list of Stokes vectors."""

    def __init__(self, stream, mean=(1.0, 0.0, 0.0, 0.0)):
        super().__init__(1)
        self.stream = [np.asarray(s, dtype=float) for s in stream]
        self.index = 0
        self.mean = np.asarray(mean, dtype=float)

    def get_Stokes(self, rng):
        S = self.stream[self.index]
        self.index += 1
        return S.copy()

    def get_mean(self):
        return self.mean.copy()

    def get_instance_covariance(self):
        return np.eye(4)


def _stream(n, seed=0):
    gen = np.random.default_rng(seed)
    S = gen.normal(size=(n, 4))
    S[:, 0] = 3.0 + np.abs(S[:, 0])
    return S


# ============================================================
# 1. Accumulator arithmetic (deterministic streams)
# ============================================================

class TestAccumulators:
    """Exact bookkeeping of the statistics engine."""

    def test_mean_and_sample_centered_covariance(self):
        from simpol.statistics import StatisticsEngine
        S = _stream(50)
        result = StatisticsEngine(StubSample(S)).run(len(S), rng=None)

        tot = np.zeros(4)
        totsq = np.zeros((4, 4))
        for s in S:
            tot += s
            totsq += np.outer(s, s)
        tot /= len(S)
        totsq /= len(S)
        totsq -= np.outer(tot, tot)

        assert result.count == 50
        np.testing.assert_array_equal(result.mean, tot)
        np.testing.assert_array_equal(result.covariance, totsq)

    def test_population_centered_covariance(self):
        """Divide by the count first, then subtract outer(pop, pop)."""
        from simpol.statistics import StatisticsEngine
        S = _stream(40, seed=1)
        population = np.array([3.5, 0.1, -0.1, 0.0])
        engine = StatisticsEngine(StubSample(S), subtract_population_mean=True,
                                  population_mean=population)
        result = engine.run(len(S), rng=None)

        totsq = np.zeros((4, 4))
        for s in S:
            totsq += np.outer(s, s)
        totsq /= len(S)
        totsq -= np.outer(population, population)
        np.testing.assert_array_equal(result.covariance, totsq)

        default = StatisticsEngine(StubSample(S)).run(len(S), rng=None)
        assert not np.array_equal(default.covariance, result.covariance)

    def test_mean_degree_of_polarization(self):
        from simpol.statistics import StatisticsEngine
        S = [[2.0, 1.0, 0.0, 0.0], [1.0, 0.0, 0.6, 0.8], [4.0, 0.0, 0.0, 0.0]]
        result = StatisticsEngine(StubSample(S)).run(3, rng=None)
        assert result.mean_dop == pytest.approx((0.5 + 1.0 + 0.0) / 3)

    @pytest.mark.parametrize('nlag', [1, 3, 7])
    def test_lag_ring_buffer(self, nlag):
        """Ring-buffer products match a direct sum over the stream."""
        from simpol.statistics import StatisticsEngine
        N = 60
        S = _stream(N, seed=nlag)
        result = StatisticsEngine(StubSample(S), nlag=nlag).run(N, rng=None)

        acf = np.zeros((nlag, 4, 4))
        count = 0
        for t in range(nlag - 1, N):
            oldest = t - nlag + 1
            for lag in range(nlag):
                acf[lag] += np.outer(S[oldest + lag], S[oldest])
            count += 1
        mean = S.mean(axis=0)
        acf = acf / count - np.outer(mean, mean)

        assert result.count_lag == N - nlag + 1
        np.testing.assert_allclose(result.acf, acf, atol=1e-12)
        assert result.expected_acf.shape == (nlag, 4, 4)

    def test_lag_zero_is_covariance(self):
        from simpol.statistics import StatisticsEngine
        S = _stream(30, seed=9)
        result = StatisticsEngine(StubSample(S), nlag=1).run(30, rng=None)
        np.testing.assert_allclose(result.acf[0], result.covariance, atol=1e-12)

    def test_coherency_covariance_identity(self):
        """Sample-centred rho covariance equals 1/4 sum C_ij sigma_i (x) sigma_j."""
        from simpol.pauli import coherency_covariance, stokes_to_coherency
        from simpol.statistics import StatisticsEngine
        S = _stream(25, seed=4)
        result = StatisticsEngine(StubSample(S), rho_stats=True).run(25, rng=None)
        np.testing.assert_allclose(result.rho_mean,
                                   stokes_to_coherency(result.mean), atol=1e-12)
        np.testing.assert_allclose(result.rho_covariance,
                                   coherency_covariance(result.covariance),
                                   atol=1e-10)

    def test_sample_hook(self):
        from simpol.statistics import StatisticsEngine
        seen = []
        S = _stream(5)
        StatisticsEngine(StubSample(S),
                         sample_hook=lambda i, s: seen.append(i)).run(5, rng=None)
        assert seen == [0, 1, 2, 3, 4]

    def test_fewer_samples_than_lags(self):
        """No lag product is formed, so the measured acf is NaN throughout."""
        from simpol.statistics import StatisticsEngine
        S = _stream(5, seed=2)
        result = StatisticsEngine(StubSample(S), nlag=10).run(5, rng=None)
        assert result.count_lag == 0
        assert result.acf.shape == (10, 4, 4)
        assert np.all(np.isnan(result.acf))
        assert np.all(np.isfinite(result.expected_acf))

    def test_predict_only(self):
        from simpol.modes import Mode
        from simpol.sample import Single
        from simpol.statistics import StatisticsEngine
        engine = StatisticsEngine(Single(Mode()), nlag=4, rho_stats=True)
        result = engine.predict()
        assert result.count == 0
        assert not result.simulated
        assert result.expected_acf.shape == (4, 4, 4)
        assert result.eigenvalues.shape == (4,)
        # nothing drawn when nsamp < 1
        assert not engine.run(0, rng=None).simulated


# ============================================================
# 2. End-to-end Monte Carlo
# ============================================================

class TestUnpolarizedNoise:
    """Population (1,0,0,0), no modulation, one instance per sample."""

    N = 100000

    @pytest.fixture(scope='class')
    def result(self):
        from simpol.modes import Mode
        from simpol.random_source import RandomSource
        from simpol.sample import Single
        from simpol.statistics import StatisticsEngine
        engine = StatisticsEngine(Single(Mode((1.0, 0.0, 0.0, 0.0))),
                                  rho_stats=True)
        return engine.run(self.N, RandomSource(2017))

    def test_mean_within_standard_errors(self, result):
        stderr = np.sqrt(np.diag(result.expected_covariance) / self.N)
        assert np.all(np.abs(result.mean - result.expected_mean) < 4 * stderr)

    def test_covariance_diagonal(self, result):
        """Detector noise of one instance: var = I^2/2 for every parameter."""
        np.testing.assert_allclose(np.diag(result.expected_covariance), 0.5)
        np.testing.assert_allclose(np.diag(result.covariance), 0.5, atol=0.02)

    def test_covariance_off_diagonal(self, result):
        off = result.covariance - np.diag(np.diag(result.covariance))
        assert np.all(np.abs(off) < 0.02)

    def test_single_instance_fully_polarized(self, result):
        """Every single-field sample is 100% polarized."""
        assert result.mean_dop == pytest.approx(1.0, abs=1e-9)

    def test_modulation_index(self, result):
        assert result.modulation_index == pytest.approx(math.sqrt(0.5), abs=0.02)

    def test_coherency_covariance_matches_candidate(self, result):
        np.testing.assert_allclose(result.rho_covariance, result.candidate,
                                   atol=0.02)

    def test_principal_modes(self, result):
        """The candidate operator is reproduced by its eigen decomposition."""
        V = result.eigenvectors
        np.testing.assert_allclose(V @ np.diag(result.eigenvalues) @ V.conj().T,
                                   result.candidate, atol=1e-10)

    def test_reproducible(self):
        from simpol.modes import Mode
        from simpol.random_source import RandomSource
        from simpol.sample import Single
        from simpol.statistics import StatisticsEngine
        r1 = StatisticsEngine(Single(Mode())).run(500, RandomSource(99))
        r2 = StatisticsEngine(Single(Mode())).run(500, RandomSource(99))
        np.testing.assert_array_equal(r1.covariance, r2.covariance)


class TestIntegratedModulatedNoise:
    """Partially polarized, log-normal modulation, 4 instances per sample."""

    N = 50000
    STOKES = (1.0, 0.3, 0.0, 0.4)

    @pytest.fixture(scope='class')
    def result(self):
        from simpol.modes import Mode
        from simpol.modulated import LognormalMode
        from simpol.random_source import RandomSource
        from simpol.sample import Single
        from simpol.statistics import StatisticsEngine
        sample = Single(LognormalMode(Mode(self.STOKES), 0.5), sample_size=4)
        return StatisticsEngine(sample).run(self.N, RandomSource(7))

    def test_mean(self, result):
        stderr = np.sqrt(np.diag(result.expected_covariance) / self.N)
        assert np.all(np.abs(result.mean - result.expected_mean) < 4 * stderr)

    def test_covariance(self, result):
        np.testing.assert_allclose(result.covariance, result.expected_covariance,
                                   atol=0.015)


class TestBoxcarLag:
    """Box-car (n=5) modulation, 10 lags: triangular decay, then zero."""

    N = 2 ** 17
    WIDTH = 5
    NLAG = 10

    @pytest.fixture(scope='class')
    def result(self):
        from simpol.modes import Mode
        from simpol.modulated import BoxcarModulatedMode, LognormalMode
        from simpol.random_source import RandomSource
        from simpol.sample import Single
        from simpol.statistics import StatisticsEngine
        chain = BoxcarModulatedMode(LognormalMode(Mode(), 1.0), self.WIDTH)
        engine = StatisticsEngine(Single(chain), nlag=self.NLAG)
        return engine.run(self.N, RandomSource(5))

    def test_expected_triangular_decay(self, result):
        var = 1.0 / self.WIDTH
        for lag in range(self.WIDTH):
            expected = (self.WIDTH - lag) / self.WIDTH * var
            assert result.expected_acf[lag][0, 0] == pytest.approx(expected)
        for lag in range(self.WIDTH, self.NLAG):
            assert np.all(result.expected_acf[lag] == 0.0)

    def test_measured_lags_follow_decay(self, result):
        # lag 0 also carries the detector noise, so start at lag 1
        for lag in range(1, self.WIDTH):
            assert abs(result.acf[lag][0, 0]
                       - result.expected_acf[lag][0, 0]) < 0.035

    def test_measured_lags_vanish(self, result):
        for lag in range(self.WIDTH, self.NLAG):
            assert abs(result.acf[lag][0, 0]) < 0.035

    def test_lag_zero_total_variance(self, result):
        assert result.acf[0][0, 0] == pytest.approx(
            result.expected_covariance[0, 0], rel=0.15)

    def test_lag_count(self, result):
        assert result.count_lag == self.N - self.NLAG + 1


class TestDualModes:
    """Combinations drawn end to end against their closed forms."""

    N = 40000
    A = (1.0, 0.6, 0.0, 0.0)
    B = (1.0, 0.0, 0.0, -0.5)

    def _run(self, dual, seed):
        from simpol.modes import Mode
        from simpol.random_source import RandomSource
        from simpol.statistics import StatisticsEngine
        dual.A = Mode(self.A)
        dual.B = Mode(self.B)
        return StatisticsEngine(dual).run(self.N, RandomSource(seed))

    def _check(self, result):
        stderr = np.sqrt(np.diag(result.expected_covariance) / self.N)
        assert np.all(np.abs(result.mean - result.expected_mean) < 4 * stderr)
        scale = np.max(np.abs(result.expected_covariance))
        np.testing.assert_allclose(result.covariance, result.expected_covariance,
                                   atol=0.05 * scale)

    def test_superposed(self):
        from simpol.sample import Superposed
        self._check(self._run(Superposed(), 31))

    def test_composite(self):
        from simpol.sample import Composite
        self._check(self._run(Composite(0.3), 32))

    def test_disjoint(self):
        from simpol.sample import Disjoint
        self._check(self._run(Disjoint(0.5, sample_size=2), 33))

    def test_coherent(self):
        from simpol.sample import Coherent
        self._check(self._run(Coherent(0.7), 34))


# ============================================================
# 3. Command line
# ============================================================

class TestCommandLine:
    """Exit codes and text outputs of ``python -m simpol``."""

    def test_unparsable_stokes(self, capsys):
        from simpol.__main__ import main
        assert main(['-t', '-s', '1,0,x']) == 1
        assert 'Error parsing' in capsys.readouterr().err

    def test_unrealizable_stokes(self, capsys):
        from simpol.__main__ import main
        assert main(['-t', '-s', '1,1,1,0']) == 1
        assert 'Invalid Stokes parameters' in capsys.readouterr().err

    def test_theory_only_lag_files(self, tmp_path, capsys):
        from simpol.__main__ import main
        status = main(['-t', '-l', '1', '-b', '3', '-X', '4',
                       '--output-dir', str(tmp_path)])
        assert status == 0
        out = capsys.readouterr().out
        assert 'STOKES PARAMETERS' in out
        assert 'covar=' not in out

        rows = (tmp_path / 'acf_plot.txt').read_text().splitlines()
        assert len(rows) == 4
        assert all(len(row.split()) == 1 + 16 for row in rows)
        assert float(rows[0].split()[1]) == pytest.approx(1.0 / 3, abs=1e-5)
        assert float(rows[3].split()[1]) == 0.0

        text = (tmp_path / 'acf.txt').read_text()
        assert text.count('lag=') == 4
        assert 'mean=' not in text

    def test_simulated_lag_files(self, tmp_path, capsys):
        from simpol.__main__ import main
        status = main(['-N', '0.01', '-X', '3', '--seed', '1',
                       '--output-dir', str(tmp_path)])
        assert status == 0
        out = capsys.readouterr().out
        assert 'mean sample dop=' in out
        assert 'covar=' in out
        rows = (tmp_path / 'acf_plot.txt').read_text().splitlines()
        assert len(rows) == 3
        assert all(len(row.split()) == 1 + 32 for row in rows)
        assert (tmp_path / 'acf.txt').read_text().count('mean=') == 3

    def test_means_and_variances(self, tmp_path, capsys):
        from simpol.__main__ import main
        status = main(['-N', '0.005', '-d', '-X', '2', '--seed', '3',
                       '--output-dir', str(tmp_path)])
        assert status == 0
        out = capsys.readouterr().out
        assert 'mean[0] = ' in out and 'var[3] = ' in out
        assert 'STOKES PARAMETERS' not in out
        assert not os.path.exists(tmp_path / 'acf.txt')

    def test_dual_coherency_report(self, capsys):
        from simpol.__main__ import main
        assert main(['-t', '-S', '-s', 'B1,0,0,1', '-R']) == 0
        out = capsys.readouterr().out
        assert 'COHERENCY MATRIX' in out
        assert 'e_3=' in out

    def test_lenient_numeric_options(self, capsys):
        from simpol.__main__ import main
        assert main(['-t', '-l', 'abc', '-n', '2x']) == 0
        assert 'expected=' in capsys.readouterr().out

    def test_disjoint_with_zero_instances(self, capsys):
        from simpol.__main__ import main
        with np.errstate(divide='ignore', invalid='ignore'):
            status = main(['-D', '0.5', '-n', '0', '-N', '0.0001', '--seed', '5'])
        assert status == 0
        assert 'STOKES PARAMETERS' in capsys.readouterr().out

    def test_unparsable_instance_count(self, capsys):
        from simpol.__main__ import main
        with np.errstate(divide='ignore', invalid='ignore'):
            status = main(['-n', 'abc', '-N', '0.0001', '--seed', '5'])
        assert status == 0
        assert 'STOKES PARAMETERS' in capsys.readouterr().out
