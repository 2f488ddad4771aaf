"""
simpol — Monte-Carlo Statistics of Polarized Radiation
========================================================

Simulates the higher-order moments of polarized electromagnetic
radiation and checks them against closed-form predictions for the mean,
covariance and lagged autocovariance of the Stokes parameters and the
coherency matrix.

Modules
-------
pauli          : Stokes / coherency algebra, detector-noise covariance
random_source  : explicit, seeded random-number context
modes          : FieldTransformer base and the Gaussian leaf emitter
modulated      : log-normal, box-car and square amplitude modulation
sample         : detector integration and dual-mode combinations
statistics     : streaming moments, lag autocovariance, mode decomposition
config         : run configuration and sample construction
report         : console summaries and acf text files

Reference: van Straten & Tiburzi (2017), ApJ 835, 293
           "The Statistics of Radio Astronomical Polarimetry:
            Disjoint, Superposed, and Composite Samples"
"""

__version__ = "1.0.0"
