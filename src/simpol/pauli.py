"""
simpol — Pauli / Stokes Linear Algebra
========================================

Canonical source of the polarization algebra used by every module in
simpol.  All field, coherency and Stokes quantities are plain numpy
arrays:

=================  ===========  ==========================================
Quantity           Shape        dtype
=================  ===========  ==========================================
Field (spinor)     (2,)         complex128
Coherency matrix   (2, 2)       complex128, Hermitian, positive semi-def.
Stokes vector      (4,)         float64   (I, Q, U, V)
Covariance         (4, 4)       float64   symmetric
Coherency covar.   (4, 4)       complex128 (direct product space)
=================  ===========  ==========================================

Conventions
-----------
The coherency matrix and Stokes parameters are related by

    rho = 1/2 * sum_k S_k sigma_k,      S_k = tr(sigma_k rho)

with sigma_0 the identity and sigma_1..3 the Pauli matrices ordered so
that Q = |E_x|^2 - |E_y|^2, U = 2 Re(E_x* E_y), V = 2 Im(E_x* E_y).

Sections
--------
1  Pauli basis, outer / direct products
2  Stokes <-> coherency conversion, detection of a field
3  Detector-noise covariance of a single field instance
4  Direct-product (Dirac) generators and the Hermitian eigensolver

Key references
--------------
- van Straten & Tiburzi (2017) ApJ 835, 293 -- higher-order moments
  of polarized radiation
- Britton (2000) ApJ 532, 1240 -- Stokes covariance of noise
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
import scipy.linalg
from numpy.typing import ArrayLike, NDArray


# ======================================================================
# S1  PAULI BASIS
# ======================================================================

PAULI: NDArray = np.array([
    [[1, 0], [0, 1]],
    [[1, 0], [0, -1]],
    [[0, 1], [1, 0]],
    [[0, -1j], [1j, 0]],
], dtype=complex)
"""sigma_0 (identity) followed by the three Pauli matrices, shape (4, 2, 2)."""

MINKOWSKI: NDArray = np.diag([1.0, -1.0, -1.0, -1.0])
"""Metric under which S . S = I^2 - |P|^2 (zero for a fully polarized state)."""


def outer(a: ArrayLike, b: ArrayLike) -> NDArray:
    """Outer product a b^T of two 4-vectors."""
    return np.outer(a, b)


def direct(a: ArrayLike, b: ArrayLike) -> NDArray:
    """Direct (Kronecker) product of two 2x2 matrices -> 4x4."""
    return np.kron(a, b)


# ======================================================================
# S2  STOKES <-> COHERENCY
# ======================================================================

def stokes_to_coherency(stokes: ArrayLike) -> NDArray:
    """Coherency matrix rho = 1/2 sum_k S_k sigma_k."""
    return 0.5 * np.einsum('k,kij->ij', np.asarray(stokes, dtype=float), PAULI)


def coherency_to_stokes(rho: ArrayLike) -> NDArray:
    """Stokes parameters S_k = Re tr(sigma_k rho)."""
    return np.einsum('kij,ji->k', PAULI, np.asarray(rho)).real


def detect(field: NDArray, out: Optional[NDArray] = None) -> NDArray:
    """Square-law detection of one field instance.

    Equivalent to ``coherency_to_stokes(outer(e, conj(e)))`` but written
    out component by component; this sits in the innermost loop.

    Parameters
    ----------
    field : complex array, shape (2,)
    out   : optional float array, shape (4,), filled in place

    Returns
    -------
    stokes : float array, shape (4,)
    """
    x, y = field[0], field[1]
    xx = x.real * x.real + x.imag * x.imag
    yy = y.real * y.real + y.imag * y.imag
    xy = x.conjugate() * y

    if out is None:
        out = np.empty(4)
    out[0] = xx + yy
    out[1] = xx - yy
    out[2] = 2.0 * xy.real
    out[3] = 2.0 * xy.imag
    return out


def polarized_intensity(stokes: ArrayLike) -> float:
    """|P| = sqrt(Q^2 + U^2 + V^2)."""
    s = np.asarray(stokes, dtype=float)
    return float(np.sqrt(s[1] ** 2 + s[2] ** 2 + s[3] ** 2))


def degree_of_polarization(stokes: ArrayLike) -> float:
    """|P| / I."""
    return polarized_intensity(stokes) / float(stokes[0])


def is_realizable(stokes: ArrayLike) -> bool:
    """True when the polarized intensity does not exceed the total."""
    return polarized_intensity(stokes) <= float(stokes[0])


def jones_root(rho: ArrayLike) -> NDArray:
    """Hermitian square root J of a coherency matrix, J J^H = rho.

    A field e = J z, with z a pair of unit-variance circular complex
    normal deviates, has coherency <e e^H> = rho.  Negative eigenvalues
    from round-off are clipped to zero so that fully polarized
    (rank-one) states are handled.
    """
    w, v = scipy.linalg.eigh(np.asarray(rho, dtype=complex))
    w = np.sqrt(np.clip(w, 0.0, None))
    return (v * w) @ v.conj().T


# ======================================================================
# S3  DETECTOR-NOISE COVARIANCE
# ======================================================================

def instance_covariance(stokes: ArrayLike) -> NDArray:
    """Covariance of the Stokes parameters of one detected field instance.

    For a circular complex Gaussian field with coherency rho,

        C_mn = Re tr(sigma_m rho sigma_n rho)

    which equals  S S^T - 1/2 eta (S^T eta S)  with eta = diag(1,-1,-1,-1).
    Unpolarized light gives C = I^2/2 * identity; fully polarized light
    gives C = S S^T (exponentially distributed intensity).
    """
    rho = stokes_to_coherency(stokes)
    return np.einsum('mab,bc,ncd,da->mn', PAULI, rho, PAULI, rho).real


def interference_covariance(stokes_a: ArrayLike,
                            stokes_b: ArrayLike) -> NDArray:
    """Covariance contributed by the cross terms of e_A + e_B.

    When two independent, circularly symmetric fields are added before
    detection, the interference term  X_k = 2 Re(e_B^H sigma_k e_A)  has
    zero mean and covariance

        <X_m X_n> = 2 Re tr(sigma_m rho_A sigma_n rho_B)

    which depends only on the mean coherency of each field.
    """
    rho_a = stokes_to_coherency(stokes_a)
    rho_b = stokes_to_coherency(stokes_b)
    return 2.0 * np.einsum('mab,bc,ncd,da->mn',
                           PAULI, rho_a, PAULI, rho_b).real


# ======================================================================
# S4  DIRAC GENERATORS AND EIGENSOLVER
# ======================================================================

def dirac_matrix(i: int, j: int) -> NDArray:
    """Direct product sigma_i (x) sigma_j, one of the 16 generators of 4x4 space."""
    return np.kron(PAULI[i], PAULI[j])


def coherency_covariance(covariance: ArrayLike) -> NDArray:
    """Covariance of the coherency matrix in direct-product space.

    With rho - <rho> = 1/2 sum_k dS_k sigma_k,

        <(rho - <rho>) (x) (rho - <rho>)> = 1/4 sum_ij C_ij sigma_i (x) sigma_j

    The result is a 4x4 Hermitian operator whose eigenvectors are the
    principal radiation modes.
    """
    covariance = np.asarray(covariance, dtype=float)
    result = np.zeros((4, 4), dtype=complex)
    for i in range(4):
        for j in range(4):
            result += dirac_matrix(i, j) * (covariance[i, j] * 0.25)
    return result


def hermitian_eigen(matrix: ArrayLike) -> Tuple[NDArray, NDArray]:
    """Eigenvalues and eigenvectors (columns) of a Hermitian matrix.

    The order is whatever the solver returns; callers must not assume
    it is sorted.
    """
    eigenvalues, eigenvectors = scipy.linalg.eigh(np.asarray(matrix))
    return eigenvalues, eigenvectors
