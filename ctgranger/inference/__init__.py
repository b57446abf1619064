"""
ctgranger Inference

Maximum-likelihood fitting and the bootstrap likelihood-ratio test:
- Constrained estimation per model variant
- Parametric bootstrap with per-replicate random streams
- Granger test orchestration
"""

from .estimator import (
    FitResult,
    fit_model,
    default_theta,
    require_converged,
)
from .bootstrap import (
    BootstrapSample,
    ReplicateOutcome,
    bootstrap_replicate,
    lr_statistic,
    replicate_rng,
    run_bootstrap,
)
from .granger import (
    GrangerTestResult,
    granger_test,
)

__all__ = [
    # Estimation
    'FitResult',
    'fit_model',
    'default_theta',
    'require_converged',
    # Bootstrap
    'BootstrapSample',
    'ReplicateOutcome',
    'bootstrap_replicate',
    'lr_statistic',
    'replicate_rng',
    'run_bootstrap',
    # Test
    'GrangerTestResult',
    'granger_test',
]
