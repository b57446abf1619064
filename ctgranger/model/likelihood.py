"""
Likelihood of the bivariate continuous-time autoregressive model.

For observations i = 0..n-1 with dt_i = t_i - t_{i-1}:

    root_0  ~ N(0, sigma2_root)
    shoot_0 ~ N(0, sigma2_shoot)

    rho_x(i)   = exp(-dt_i / phi_x)
    mean_root  = rho_root(i)  * root_{i-1}  + psi_root  * sum_j w_ij(gamma_root)  * shoot_j
    mean_shoot = rho_shoot(i) * shoot_{i-1} + psi_shoot * sum_j w_ij(gamma_shoot) * root_j
    var_x      = sigma2_x * (1 - rho_x(i)^2)

with root_i and shoot_i conditionally independent given the past. The
dependence on the own past decays with elapsed time, not with index, and
w_ij are the kernel weights from ctgranger.model.kernel. The simulator
draws from exactly these conditionals.
"""

from typing import NamedTuple

import numpy as np

from ctgranger.model.kernel import impact_weights
from ctgranger.model.parameters import ParameterVector, ThetaLike, as_parameter_vector


LOG_2PI = np.log(2.0 * np.pi)


class Transition(NamedTuple):
    """Time-grid dependent terms of the conditional distributions."""
    rho_root: np.ndarray       # (n-1,) own-past decay
    rho_shoot: np.ndarray
    var_root: np.ndarray       # (n,) conditional variances, index 0 is stationary
    var_shoot: np.ndarray
    weights_root: np.ndarray   # (n, n) weights over past shoot values
    weights_shoot: np.ndarray  # (n, n) weights over past root values


def transition_terms(times: np.ndarray, theta: ParameterVector) -> Transition:
    """Compute decays, conditional variances and impact weights for a grid."""
    t = np.asarray(times, dtype=float)
    dt = np.diff(t)

    rho_root = np.exp(-dt / theta.phi_root)
    rho_shoot = np.exp(-dt / theta.phi_shoot)

    # 1 - rho^2 via expm1 stays accurate for dt << phi
    var_root = np.empty(len(t))
    var_root[0] = theta.sigma2_root
    var_root[1:] = -theta.sigma2_root * np.expm1(-2.0 * dt / theta.phi_root)

    var_shoot = np.empty(len(t))
    var_shoot[0] = theta.sigma2_shoot
    var_shoot[1:] = -theta.sigma2_shoot * np.expm1(-2.0 * dt / theta.phi_shoot)

    return Transition(
        rho_root=rho_root,
        rho_shoot=rho_shoot,
        var_root=var_root,
        var_shoot=var_shoot,
        weights_root=impact_weights(t, theta.gamma_root),
        weights_shoot=impact_weights(t, theta.gamma_shoot),
    )


def conditional_means(
    root: np.ndarray,
    shoot: np.ndarray,
    terms: Transition,
    theta: ParameterVector,
):
    """One-step conditional means of root and shoot given all earlier observations."""
    mean_root = np.zeros(len(root))
    mean_shoot = np.zeros(len(shoot))

    mean_root[1:] = terms.rho_root * root[:-1] + theta.psi_root * (terms.weights_root @ shoot)[1:]
    mean_shoot[1:] = terms.rho_shoot * shoot[:-1] + theta.psi_shoot * (terms.weights_shoot @ root)[1:]
    return mean_root, mean_shoot


def _gaussian_logpdf_sum(x: np.ndarray, mean: np.ndarray, var: np.ndarray) -> float:
    resid = x - mean
    return float(-0.5 * np.sum(LOG_2PI + np.log(var) + resid * resid / var))


def loglik(root, shoot, times, theta: ThetaLike) -> float:
    """
    Exact log-likelihood of an observed signal pair.

    Args:
        root: Root signal, length n
        shoot: Shoot signal, length n
        times: Strictly increasing time grid, length n
        theta: ParameterVector or ordered sequence of 8 values

    Returns:
        Log-likelihood, or -inf when theta is out of domain or the
        evaluation is not finite. Never raises for bad parameters.
    """
    try:
        theta = as_parameter_vector(theta)
    except ValueError:
        return -np.inf
    if not theta.is_valid():
        return -np.inf

    root = np.asarray(root, dtype=float)
    shoot = np.asarray(shoot, dtype=float)

    with np.errstate(all='ignore'):
        terms = transition_terms(times, theta)
        if np.any(terms.var_root <= 0) or np.any(terms.var_shoot <= 0):
            return -np.inf

        mean_root, mean_shoot = conditional_means(root, shoot, terms, theta)
        value = (
            _gaussian_logpdf_sum(root, mean_root, terms.var_root)
            + _gaussian_logpdf_sum(shoot, mean_shoot, terms.var_shoot)
        )

    if not np.isfinite(value):
        return -np.inf
    return value


def negloglik(root, shoot, times, theta: ThetaLike) -> float:
    """Negative log-likelihood; +inf outside the parameter domain."""
    return -loglik(root, shoot, times, theta)
