"""Shared fixtures for ctgranger tests."""

from dataclasses import replace

import numpy as np
import pytest

from ctgranger.config import get_config
from ctgranger.model import ParameterVector


# Sampling grid of the documented example: dense early, sparse late.
EXAMPLE_TIMES = np.array([0, 5, 10, 15, 20, 30, 45, 60, 90, 120], dtype=float)


@pytest.fixture
def example_times():
    return EXAMPLE_TIMES.copy()


@pytest.fixture
def long_times():
    """Irregular grid long enough for parameter recovery."""
    rng = np.random.default_rng(7)
    return np.cumsum(rng.uniform(0.5, 3.0, size=300))


@pytest.fixture
def theta_null():
    """No cross-influence in either direction."""
    return ParameterVector(
        phi_root=20.0,
        phi_shoot=15.0,
        sigma2_root=1.0,
        sigma2_shoot=1.0,
    )


@pytest.fixture
def theta_stor():
    """
    Shoot strongly drives root, peaking 10 time units after the cause.

    The documented example vector (1, 0.99, 10, 0.01, 1, 0, 0, 0.1) read in
    canonical order gives sigma2_root=10, gamma_root=0 and psi_root=1. psi=1
    is outside (-1, 1), so that reading fails validation. This is the same
    strong shoot -> root design expressed in canonical order, with psi_root
    just inside the domain and the lag peak at 10.
    """
    return ParameterVector(
        phi_root=2.0,
        phi_shoot=30.0,
        sigma2_root=0.05,
        sigma2_shoot=1.0,
        psi_root=0.95,
        psi_shoot=0.0,
        gamma_root=10.0,
        gamma_shoot=0.0,
    )


@pytest.fixture
def fast_config():
    """Fewer restarts to keep bootstrap tests quick."""
    base = get_config()
    return replace(base, estimator=replace(base.estimator, n_restarts=1))
