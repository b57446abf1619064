"""
ctgranger - Granger Causality for Irregular Sampling
====================================================

Continuous-time bivariate autoregressive model for two signals observed at
the same, non-uniform time points, with a bootstrap likelihood-ratio test
for cross-influence.

Architecture:
    - model/:       Parameters, impact kernel, likelihood, simulator
    - inference/:   MLE fitting, parametric bootstrap, Granger test
    - config/:      YAML-backed defaults
    - cli.py:       Command line interface

Usage:
    # CLI
    python -m ctgranger simulate --theta 20 20 1 1 0.8 0 10 0 --times 0 5 10 ...
    python -m ctgranger test --input signals.csv --alternative stor

    # Python
    from ctgranger import sim_proc, granger_test
    sim = sim_proc(theta, times, random_state=223)
    result = granger_test(sim.root, sim.shoot, times, alternative='stor')
"""

__version__ = "0.3.0"

from ctgranger.exceptions import (
    GrangerError,
    ValidationError,
    ConvergenceFailure,
    NumericDegeneracy,
    LowReliabilityWarning,
)
from ctgranger.model import (
    ParameterVector,
    ModelVariant,
    SimulatedSignals,
    loglik,
    sim_proc,
)
from ctgranger.inference import (
    FitResult,
    GrangerTestResult,
    fit_model,
    granger_test,
)

__all__ = [
    '__version__',
    # Errors
    'GrangerError',
    'ValidationError',
    'ConvergenceFailure',
    'NumericDegeneracy',
    'LowReliabilityWarning',
    # Model
    'ParameterVector',
    'ModelVariant',
    'SimulatedSignals',
    'loglik',
    'sim_proc',
    # Inference
    'FitResult',
    'GrangerTestResult',
    'fit_model',
    'granger_test',
]
