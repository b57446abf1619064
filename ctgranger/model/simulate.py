"""
Signal simulator.

Draws (root, shoot) pairs from the same conditional Gaussians the
likelihood evaluates, one time point at a time. Randomness comes from an
explicit numpy Generator; a fixed seed replays the same draws.

Usage:
    from ctgranger.model.simulate import sim_proc

    times = [0, 5, 10, 15, 20, 30, 45, 60, 90, 120]
    sim = sim_proc(theta, times, random_state=223)
    sim.root, sim.shoot
"""

from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from ctgranger.model.likelihood import transition_terms
from ctgranger.model.parameters import ThetaLike, as_parameter_vector
from ctgranger.model.validation import validate_seed, validate_times


RandomState = Union[None, int, np.random.Generator, np.random.SeedSequence]


def make_rng(random_state: RandomState = None) -> np.random.Generator:
    """Build a Generator from a seed, SeedSequence or existing Generator."""
    if isinstance(random_state, np.random.Generator):
        return random_state
    if not isinstance(random_state, np.random.SeedSequence):
        random_state = validate_seed(random_state, allow_none=True)
    return np.random.default_rng(random_state)


@dataclass(frozen=True)
class SimulatedSignals:
    """One realization of the bivariate process."""
    root: np.ndarray
    shoot: np.ndarray
    times: np.ndarray

    def __len__(self):
        return len(self.times)


def draw_signals(theta, times: np.ndarray, rng: np.random.Generator) -> SimulatedSignals:
    """
    Draw one realization without validating inputs.

    Used on the bootstrap hot path where theta comes from a fit and the
    grid has already been checked.
    """
    n = len(times)
    terms = transition_terms(times, theta)
    sd_root = np.sqrt(terms.var_root)
    sd_shoot = np.sqrt(terms.var_shoot)

    noise = rng.standard_normal((n, 2))
    root = np.empty(n)
    shoot = np.empty(n)

    root[0] = sd_root[0] * noise[0, 0]
    shoot[0] = sd_shoot[0] * noise[0, 1]

    for i in range(1, n):
        mean_root = (
            terms.rho_root[i - 1] * root[i - 1]
            + theta.psi_root * (terms.weights_root[i, :i] @ shoot[:i])
        )
        mean_shoot = (
            terms.rho_shoot[i - 1] * shoot[i - 1]
            + theta.psi_shoot * (terms.weights_shoot[i, :i] @ root[:i])
        )
        root[i] = mean_root + sd_root[i] * noise[i, 0]
        shoot[i] = mean_shoot + sd_shoot[i] * noise[i, 1]

    return SimulatedSignals(root=root, shoot=shoot, times=np.asarray(times, dtype=float))


def sim_proc(theta: ThetaLike, times, random_state: RandomState = None) -> SimulatedSignals:
    """
    Simulate one (root, shoot) pair at the given time points.

    Args:
        theta: ParameterVector or 8 values in canonical order
        times: Strictly increasing, non-negative time points
        random_state: Seed, SeedSequence or Generator (None: fresh entropy)

    Returns:
        SimulatedSignals with root, shoot and times

    Raises:
        ValidationError: theta out of domain, times not strictly increasing
            or a negative seed
    """
    theta = as_parameter_vector(theta).validate()
    t = validate_times(times)
    rng = make_rng(random_state)
    return draw_signals(theta, t, rng)
