"""
simpol — Run Configuration
============================

Turns command-line values into a ``RunConfig`` and builds the sample
chain it describes.

Validation policy
-----------------
Only the population Stokes vector is validated: it must parse as four
comma-separated numbers (``StokesParseError``) and be physically
realizable, |P| <= I (``UnrealizableStokesError``).  Every other numeric
option is coerced leniently with C ``atof``/``atoi`` semantics -- the
longest leading numeric prefix is used and anything unparsable becomes
zero.  Existing run scripts depend on this, so it is kept as is.
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from .modes import FieldTransformer, Mode
from .modulated import (BoxcarModulatedMode, LognormalMode,
                        ModulationMonitor, SquareModulatedMode)
from .pauli import is_realizable
from .sample import (Coherent, Combination, Composite, Disjoint, Sample,
                     Single, Superposed)

MEGA = 1024 * 1024  # -N counts units of 2^20 samples

DUAL_MODES = ('superposed', 'composite', 'disjoint', 'coherent')

_FLOAT_PREFIX = re.compile(r'\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?')
_INT_PREFIX = re.compile(r'\s*[+-]?\d+')


class StokesParseError(ValueError):
    """Population Stokes string is not four comma-separated numbers."""


class UnrealizableStokesError(ValueError):
    """Polarized intensity exceeds total intensity."""


# ============================================================
# SECTION 1: Lenient numeric coercion
# ============================================================

def atof(text: str) -> float:
    """C ``atof``: leading floating-point prefix of text, else 0.0."""
    match = _FLOAT_PREFIX.match(text)
    return float(match.group(0)) if match else 0.0


def atoi(text: str) -> int:
    """C ``atoi``: leading integer prefix of text, else 0."""
    match = _INT_PREFIX.match(text)
    return int(match.group(0)) if match else 0


def split_target(text: str) -> Tuple[str, str]:
    """Split an optional leading 'B' (second mode) from an option value."""
    if text.startswith('B'):
        return 'B', text[1:]
    return 'A', text


def parse_stokes(text: str) -> NDArray:
    """Parse 'i,q,u,v' into a realizable Stokes vector.

    Raises
    ------
    StokesParseError        if text is not four comma-separated numbers
    UnrealizableStokesError if sqrt(q^2 + u^2 + v^2) > i
    """
    parts = text.split(',')
    if len(parts) != 4:
        raise StokesParseError(f"Error parsing {text} as 4-vector")
    try:
        stokes = np.array([float(p) for p in parts])
    except ValueError:
        raise StokesParseError(f"Error parsing {text} as 4-vector") from None

    if not is_realizable(stokes):
        raise UnrealizableStokesError(f"Invalid Stokes parameters (p>I) {stokes}")
    return stokes


# ============================================================
# SECTION 2: Per-mode setup
# ============================================================

@dataclass
class ModeSetup:
    """Configuration of one mode: population mean and modulation.

    Attributes
    ----------
    mean : population mean Stokes parameters
    beta : modulation index of log-normal amplitude modulation (0 = none)
    smooth_modulator : box-car width applied to the modulation function
    square_modulator : width of the rectangular modulation pulse
    monitor : attach a ``ModulationMonitor`` to the modulation
    """
    mean: NDArray = field(default_factory=lambda: np.array([1.0, 0.0, 0.0, 0.0]))
    beta: float = 0.0
    smooth_modulator: int = 0
    square_modulator: int = 0
    monitor: bool = False

    def setup_mode(self, source: Mode) -> FieldTransformer:
        """Configure ``source`` and wrap it in the requested modulation."""
        modulated = None
        source.set_stokes(self.mean)
        chain: FieldTransformer = source

        if self.beta:
            monitor = ModulationMonitor('lognormal') if self.monitor else None
            chain = modulated = LognormalMode(chain, self.beta, monitor)
        elif self.smooth_modulator > 1 or self.square_modulator > 1:
            warnings.warn(
                "Box-car / square modulation width given without a "
                "modulation index (-l); ignored.",
                stacklevel=2,
            )

        if self.smooth_modulator > 1 and modulated:
            chain = BoxcarModulatedMode(modulated, self.smooth_modulator)

        if self.square_modulator > 1 and modulated:
            if self.smooth_modulator > 1:
                warnings.warn(
                    "Square modulation replaces box-car smoothing of the "
                    "same mode.",
                    stacklevel=2,
                )
            chain = SquareModulatedMode(modulated, self.square_modulator)

        return chain


# ============================================================
# SECTION 3: Whole-run configuration
# ============================================================

@dataclass
class RunConfig:
    """All options of one simulation run."""
    nsamp: int = MEGA
    sample_size: int = 1
    nlag: int = 0
    dual: Optional[str] = None
    dual_parameter: float = 0.0
    stokes: NDArray = field(default_factory=lambda: np.array([1.0, 0.0, 0.0, 0.0]))
    setup_A: ModeSetup = field(default_factory=ModeSetup)
    setup_B: ModeSetup = field(default_factory=ModeSetup)
    run_simulation: bool = True
    variances_and_means: bool = False
    subtract_population_mean: bool = False
    rho_stats: bool = False
    print_samples: bool = False
    seed: Optional[int] = None
    output_dir: str = field(
        default_factory=lambda: os.environ.get('SIMPOL_OUTPUT_DIR', os.getcwd()))

    def setup_for(self, target: str) -> ModeSetup:
        return self.setup_B if target == 'B' else self.setup_A

    def set_stokes(self, text: str) -> None:
        """Apply a -s value, optionally prefixed by 'B'."""
        target, value = split_target(text)
        stokes = parse_stokes(value)
        self.stokes = stokes
        self.setup_for(target).mean = stokes


def build_sample(config: RunConfig) -> Sample:
    """Build the Stokes sample described by ``config``."""
    if config.dual:
        p = config.dual_parameter
        if config.dual == 'superposed':
            dual: Combination = Superposed()
        elif config.dual == 'composite':
            dual = Composite(p)
        elif config.dual == 'disjoint':
            dual = Disjoint(p)
        elif config.dual == 'coherent':
            dual = Coherent(p)
        else:
            raise ValueError(f"Unknown dual mode: {config.dual!r}. "
                             f"Use one of {DUAL_MODES}.")

        dual.A = config.setup_A.setup_mode(dual.A)
        dual.B = config.setup_B.setup_mode(dual.B)
        dual.sample_size = config.sample_size
        if isinstance(dual, Disjoint):
            dual.check_partition()
        return dual

    source = Mode(config.stokes)
    return Single(config.setup_A.setup_mode(source), config.sample_size)
