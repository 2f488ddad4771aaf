"""
simpol — Command-line Entry Point
===================================

Simulate polarized noise and compute statistics:

    python -m simpol [options]

Options:
    -N Msamp      number of Mega (2^20) Stokes samples [default: 1]
    -n Nint       number of instances in each Stokes sample [default: 1]
    -S            superposed modes
    -C f_A        composite modes with fraction of instances in mode A
    -D f_A        disjoint modes with fraction of instances in mode A
    -c cov        coherent superposition of modes
    -s i,q,u,v    population mean Stokes parameters [default: 1,0,0,0]
    -l beta       modulation index of log-normal amplitude modulation
    -b Nsamp      box-car smooth the amplitude modulation function
    -r Nsamp      use rectangular impulse amplitude modulation function
    -X Nlag       compute cross-covariance matrices up to Nlag-1
    -t            report only theoretical predictions
    -d            report the means and variances of the Stokes parameters
    -o            centre the covariance on the population mean
    -R            coherency-matrix statistics and mode decomposition
    -p            print every Stokes sample

Values of -s, -l, -b and -r prefixed with 'B' (e.g. -l B0.5) configure
the second mode of a dual-mode run.

The -X option writes acf.txt and acf_plot.txt to --output-dir (default:
$SIMPOL_OUTPUT_DIR or the current directory).

Reference: W. van Straten & C. Tiburzi, "The Statistics of Radio
Astronomical Polarimetry: Disjoint, Superposed, and Composite Samples",
ApJ 835, 293 (2017).
"""

import argparse
import logging
import os
import sys
import time

from .config import (MEGA, RunConfig, atof, atoi, build_sample,
                     split_target)
from .random_source import RandomSource
from .report import (print_coherency_summary, print_means_and_variances,
                     print_summary, write_acf)
from .statistics import StatisticsEngine


class _DualAction(argparse.Action):
    """Select one dual-mode combination; the last one given wins."""

    def __call__(self, parser, namespace, values, option_string=None):
        kind = {'-S': 'superposed', '-C': 'composite',
                '-D': 'disjoint', '-c': 'coherent'}[option_string]
        parameter = atof(values) if isinstance(values, str) else 0.0
        namespace.dual = (kind, parameter)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='simpol',
        description='simpol: simulate polarized noise and compute statistics',
    )
    parser.add_argument('-N', dest='msamp', default='1',
                        help='number of Mega (2^20) Stokes samples [default: 1]')
    parser.add_argument('-n', dest='nint', default='1',
                        help='number of instances in each Stokes sample [default: 1]')
    parser.add_argument('-S', dest='dual', nargs=0, action=_DualAction,
                        help='superposed modes')
    parser.add_argument('-C', dest='dual', metavar='f_A', action=_DualAction,
                        help='composite modes with fraction of instances in mode A')
    parser.add_argument('-D', dest='dual', metavar='f_A', action=_DualAction,
                        help='disjoint modes with fraction of instances in mode A')
    parser.add_argument('-c', dest='dual', metavar='cov', action=_DualAction,
                        help='coherent superposition of modes')
    parser.add_argument('-s', dest='stokes', action='append', default=[],
                        metavar='i,q,u,v',
                        help='population mean Stokes parameters [default: 1,0,0,0]')
    parser.add_argument('-l', dest='beta', action='append', default=[],
                        help='modulation index of log-normal amplitude modulation')
    parser.add_argument('-b', dest='boxcar', action='append', default=[],
                        metavar='Nsamp',
                        help='box-car smooth the amplitude modulation function')
    parser.add_argument('-r', dest='square', action='append', default=[],
                        metavar='Nsamp',
                        help='use rectangular impulse amplitude modulation function')
    parser.add_argument('-X', dest='nlag', default='0', metavar='Nlag',
                        help='compute cross-covariance matrices up to Nlag-1')
    parser.add_argument('-t', dest='theory_only', action='store_true',
                        help='report only theoretical predictions')
    parser.add_argument('-d', dest='variances_and_means', action='store_true',
                        help='report the means and variances of the Stokes parameters')
    parser.add_argument('-o', dest='subtract_population_mean', action='store_true',
                        help='centre the covariance on the population mean')
    parser.add_argument('-R', dest='rho_stats', action='store_true',
                        help='coherency-matrix statistics and mode decomposition')
    parser.add_argument('-p', dest='print_samples', action='store_true',
                        help='print every Stokes sample')
    parser.add_argument('--seed', type=int, default=None,
                        help='random seed (default: fresh OS entropy, reported)')
    parser.add_argument('--output-dir', default=None,
                        help='directory for acf.txt / acf_plot.txt')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='log progress and modulation diagnostics')
    return parser


def config_from_args(args: argparse.Namespace) -> RunConfig:
    """Translate parsed options into a RunConfig (may raise ValueError)."""
    config = RunConfig()
    config.nsamp = int(MEGA * atof(args.msamp))
    config.sample_size = atoi(args.nint)
    config.nlag = atoi(args.nlag)

    if args.dual:
        config.dual, config.dual_parameter = args.dual

    for text in args.stokes:
        config.set_stokes(text)
    for text in args.beta:
        target, value = split_target(text)
        config.setup_for(target).beta = atof(value)
    for text in args.boxcar:
        target, value = split_target(text)
        config.setup_for(target).smooth_modulator = atoi(value)
    for text in args.square:
        target, value = split_target(text)
        config.setup_for(target).square_modulator = atoi(value)

    config.run_simulation = not args.theory_only
    config.variances_and_means = args.variances_and_means
    config.subtract_population_mean = args.subtract_population_mean
    config.rho_stats = args.rho_stats
    config.print_samples = args.print_samples
    config.seed = args.seed
    config.setup_A.monitor = config.setup_B.monitor = args.verbose
    if args.output_dir is not None:
        config.output_dir = os.path.abspath(args.output_dir)
    return config


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(name)s: %(message)s',
    )

    try:
        config = config_from_args(args)
    except ValueError as err:
        print(err, file=sys.stderr)
        return 1

    sample = build_sample(config)
    engine = StatisticsEngine(
        sample,
        nlag=config.nlag,
        rho_stats=config.rho_stats,
        subtract_population_mean=config.subtract_population_mean,
        population_mean=config.stokes,
        sample_hook=_print_sample if config.print_samples else None,
    )

    if config.run_simulation:
        rng = RandomSource(config.seed)
        print(f"Simulating {config.nsamp:,} Stokes samples (seed={rng.seed})",
              file=sys.stderr)
        t0 = time.time()
        result = engine.run(config.nsamp, rng)
        print(f"Done ({time.time() - t0:.1f} s)", file=sys.stderr)
    else:
        result = engine.predict()

    if config.variances_and_means and result.simulated:
        print_means_and_variances(result)
        return 0

    print_summary(result)

    if config.nlag:
        acf_path, plot_path = write_acf(result, config.output_dir)
        print(f"\nLag cross-covariances written to {acf_path} and {plot_path}")

    if config.rho_stats:
        print_coherency_summary(result)

    return 0


def _print_sample(index, stokes):
    print(index, " ".join(f"{x:g}" for x in stokes))


if __name__ == '__main__':
    sys.exit(main())
