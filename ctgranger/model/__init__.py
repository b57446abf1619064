"""
ctgranger Model

Bivariate continuous-time autoregressive model for irregular sampling:
- Parameter vector and nested variants
- Cross-impact kernel
- Exact likelihood
- Simulator sharing the likelihood's conditionals
"""

from .parameters import (
    PARAMETER_NAMES,
    ParameterVector,
    ModelVariant,
    as_parameter_vector,
)
from .kernel import (
    impact_kernel,
    impact_weights,
)
from .likelihood import (
    loglik,
    negloglik,
    transition_terms,
)
from .simulate import (
    SimulatedSignals,
    sim_proc,
    make_rng,
)
from .validation import (
    validate_inputs,
    validate_seed,
    validate_times,
)

__all__ = [
    # Parameters
    'PARAMETER_NAMES',
    'ParameterVector',
    'ModelVariant',
    'as_parameter_vector',
    # Kernel
    'impact_kernel',
    'impact_weights',
    # Likelihood
    'loglik',
    'negloglik',
    'transition_terms',
    # Simulation
    'SimulatedSignals',
    'sim_proc',
    'make_rng',
    # Validation
    'validate_inputs',
    'validate_seed',
    'validate_times',
]
