"""
simpol — Text Reports
=======================

Console summary of measured vs expected moments, and the two lag files:

  acf.txt       one human-readable block per lag
  acf_plot.txt  one whitespace-delimited row per lag for external plotting:
                lag, then for each of the 16 matrix entries (row major)
                the expected value followed by the measured value
"""

from __future__ import annotations

import os
import sys
from typing import Optional, TextIO

import numpy as np
from numpy.typing import NDArray

from .statistics import StatisticsResult

RULE = " " + "*" * 67 + " "


def format_vector(v: NDArray) -> str:
    return "(" + ",".join(f"{x:g}" for x in np.asarray(v).ravel()) + ")"


def format_matrix(m: NDArray) -> str:
    m = np.asarray(m)
    rows = []
    for row in m:
        if np.iscomplexobj(row):
            cells = [f"({z.real:g},{z.imag:g})" for z in row]
        else:
            cells = [f"{x:g}" for x in row]
        rows.append("[" + ",".join(cells) + "]")
    return "\n".join(rows)


def _banner(title: str, stream: TextIO) -> None:
    print(file=stream)
    print(RULE, file=stream)
    print(file=stream)
    print(f" {title} ", file=stream)
    print(file=stream)
    print(RULE, file=stream)
    print(file=stream)


# ============================================================
# SECTION 1: Console summaries
# ============================================================

def print_means_and_variances(result: StatisticsResult,
                              stream: Optional[TextIO] = None) -> None:
    """mean[i] and var[i] of each Stokes parameter (measured)."""
    stream = stream or sys.stdout
    for i in range(4):
        print(f"mean[{i}] = {result.mean[i]:g}", file=stream)
        print(f"var[{i}] = {result.covariance[i, i]:g}", file=stream)


def print_summary(result: StatisticsResult,
                  stream: Optional[TextIO] = None) -> None:
    """Measured vs expected mean and covariance of the Stokes parameters."""
    stream = stream or sys.stdout
    _banner("STOKES PARAMETERS", stream)

    if result.simulated:
        print(f"mean sample dop={result.mean_dop:g}", file=stream)
        print(file=stream)
        print(f"modulation index={result.modulation_index:g}", file=stream)
        print(file=stream)
        print(f"mean={format_vector(result.mean)}", file=stream)
    print(f"expected={format_vector(result.expected_mean)}", file=stream)
    print(file=stream)

    if result.simulated:
        print("covar=", file=stream)
        print(format_matrix(result.covariance), file=stream)
    print("expected=", file=stream)
    print(format_matrix(result.expected_covariance), file=stream)


def print_coherency_summary(result: StatisticsResult,
                            stream: Optional[TextIO] = None) -> None:
    """Coherency-matrix moments and the principal mode decomposition."""
    stream = stream or sys.stdout
    _banner("COHERENCY MATRIX", stream)

    if result.rho_mean is not None:
        print("rho sq=", file=stream)
        print(format_matrix(result.rho_square), file=stream)
        print("rho mean=", file=stream)
        print(format_matrix(result.rho_mean), file=stream)
        print("rho covar=", file=stream)
        print(format_matrix(result.rho_covariance), file=stream)

    print("candidate=", file=stream)
    print(format_matrix(result.candidate), file=stream)

    for i, value in enumerate(result.eigenvalues):
        print(f"e_{i}={value:g}  v={format_vector(result.eigenvectors[:, i])}",
              file=stream)


# ============================================================
# SECTION 2: Lag files
# ============================================================

def write_acf(result: StatisticsResult, output_dir: str = '.') -> tuple:
    """Write acf.txt and acf_plot.txt; return their paths."""
    os.makedirs(output_dir, exist_ok=True)
    acf_path = os.path.join(output_dir, 'acf.txt')
    plot_path = os.path.join(output_dir, 'acf_plot.txt')

    with open(acf_path, 'w') as out, open(plot_path, 'w') as plot:
        for ilag in range(result.nlag):
            expected = result.expected_acf[ilag]

            out.write("=" * 60 + "\n")
            out.write(f"lag={ilag}\n")
            if result.simulated:
                out.write("mean=" + format_matrix(result.acf[ilag]) + "\n")
            out.write("expected=" + format_matrix(expected) + "\n")

            row = [str(ilag)]
            for i in range(4):
                for j in range(4):
                    row.append(f"{expected[i, j]:g}")
                    if result.simulated:
                        row.append(f"{result.acf[ilag][i, j]:g}")
            plot.write(" ".join(row) + "\n")

    return acf_path, plot_path
