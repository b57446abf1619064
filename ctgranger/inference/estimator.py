"""
Maximum-likelihood estimation of the bivariate model.

Free parameters of a variant are optimised in an unconstrained space
(log for phi, sigma2 and gamma; arctanh for psi). Fixed parameters never
enter the search vector, so the optimiser works on exactly n_free
coordinates. Non-convergence is reported on the FitResult, not raised.

Usage:
    from ctgranger.inference.estimator import fit_model
    from ctgranger.model import ModelVariant

    fit = fit_model(root, shoot, times, ModelVariant.STOR)
    if fit.converged:
        print(fit.theta, fit.loglik)
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

import numpy as np
from scipy.optimize import minimize

from ctgranger.config import GrangerConfig, get_config
from ctgranger.exceptions import ConvergenceFailure, NumericDegeneracy
from ctgranger.model.likelihood import loglik
from ctgranger.model.parameters import (
    PARAMETER_NAMES,
    ModelVariant,
    ParameterVector,
    ThetaLike,
    as_parameter_vector,
)

logger = logging.getLogger(__name__)

# Parameters searched on the log scale; psi uses arctanh.
_LOG_SCALE = np.array([not name.startswith('psi') for name in PARAMETER_NAMES])

# Objective value standing in for a non-finite likelihood.
_PENALTY = 1e12

# Methods accepting box bounds on the search vector.
_BOUNDED_METHODS = {'l-bfgs-b', 'tnc', 'slsqp', 'powell', 'nelder-mead', 'trust-constr'}

# Multiplicative phi perturbations for restarts, cycled in order.
_RESTART_PHI_FACTORS = (0.5, 2.0, 0.25, 4.0)


# =============================================================================
# RESULT
# =============================================================================

@dataclass(frozen=True)
class FitResult:
    """Outcome of one maximum-likelihood fit. Immutable."""
    variant: ModelVariant
    theta: ParameterVector
    loglik: float
    converged: bool
    status: str
    n_iterations: int = 0
    n_starts: int = 0
    degenerate: bool = False

    @property
    def n_free(self) -> int:
        return self.variant.n_free

    def to_dict(self) -> dict:
        return {
            'variant': self.variant.value,
            'theta': self.theta.as_dict(),
            'loglik': float(self.loglik),
            'converged': bool(self.converged),
            'status': self.status,
            'n_free': self.n_free,
            'n_iterations': int(self.n_iterations),
        }

    def __repr__(self):
        state = "converged" if self.converged else "NOT converged"
        return f"FitResult({self.variant.value}, loglik={self.loglik:.4f}, {state})"


# =============================================================================
# PARAMETER TRANSFORMS
# =============================================================================

def _to_internal(values: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """Map the free entries of a full parameter array to the search space."""
    free = values[mask]
    log_scale = _LOG_SCALE[mask]
    out = np.empty_like(free)
    out[log_scale] = np.log(free[log_scale])
    out[~log_scale] = np.arctanh(free[~log_scale])
    return out


def _from_internal(z: np.ndarray, template: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """Inverse of _to_internal, filling fixed entries from template."""
    values = template.copy()
    log_scale = _LOG_SCALE[mask]
    free = np.empty_like(z)
    free[log_scale] = np.exp(z[log_scale])
    free[~log_scale] = np.tanh(z[~log_scale])
    values[mask] = free
    return values


# =============================================================================
# STARTING VALUES
# =============================================================================

def default_theta(root, shoot, times, config: Optional[GrangerConfig] = None) -> ParameterVector:
    """
    Derive a starting parameter vector from the data.

    phi     phi_fraction * (t_max - t_min)
    sigma2  sample variance of each signal (floored)
    psi     0
    gamma   0
    """
    config = config or get_config()
    est = config.estimator
    t = np.asarray(times, dtype=float)
    span = float(t[-1] - t[0]) if len(t) > 1 else 1.0
    phi = max(est.phi_fraction * span, np.finfo(float).tiny)

    def _variance(x):
        x = np.asarray(x, dtype=float)
        var = float(np.var(x, ddof=1)) if len(x) > 1 else 1.0
        return max(var, est.variance_floor) if np.isfinite(var) else 1.0

    return ParameterVector(
        phi_root=phi,
        phi_shoot=phi,
        sigma2_root=_variance(root),
        sigma2_shoot=_variance(shoot),
    )


def _prepare_start(theta: ParameterVector, variant: ModelVariant, times: np.ndarray) -> np.ndarray:
    """Restrict to the variant and move free zero gammas onto the mean sampling interval."""
    values = theta.restricted(variant).as_array()
    mean_step = float(np.mean(np.diff(times))) if len(times) > 1 else 1.0
    for idx, name in enumerate(PARAMETER_NAMES):
        if name.startswith('gamma') and variant.free_mask[idx] and values[idx] <= 0:
            values[idx] = mean_step
    return values


def _starting_points(
    base: ParameterVector,
    variant: ModelVariant,
    times: np.ndarray,
    n_restarts: int,
    extra_starts: Iterable[ParameterVector] = (),
) -> List[np.ndarray]:
    starts = [_prepare_start(base, variant, times)]
    for extra in extra_starts:
        starts.append(_prepare_start(extra, variant, times))

    phi_idx = [PARAMETER_NAMES.index('phi_root'), PARAMETER_NAMES.index('phi_shoot')]
    for k in range(n_restarts):
        perturbed = starts[0].copy()
        perturbed[phi_idx] *= _RESTART_PHI_FACTORS[k % len(_RESTART_PHI_FACTORS)]
        starts.append(perturbed)
    return starts


# =============================================================================
# FITTING
# =============================================================================

def _minimizer_options(config: GrangerConfig) -> dict:
    est = config.estimator
    options = {'maxiter': est.max_iter}
    if est.method.lower() == 'nelder-mead':
        options.update({'xatol': est.xatol, 'fatol': est.fatol, 'adaptive': True})
    return options


def _search_bounds(mask: np.ndarray, config: GrangerConfig) -> np.ndarray:
    """(n_free, 2) box on the transformed coordinates."""
    est = config.estimator
    psi_limit = float(np.arctanh(est.psi_bound))
    return np.array([
        (-est.log_bound, est.log_bound) if log_scale else (-psi_limit, psi_limit)
        for log_scale in _LOG_SCALE[mask]
    ])


def fit_model(
    root,
    shoot,
    times,
    variant,
    theta0: Optional[ThetaLike] = None,
    config: Optional[GrangerConfig] = None,
    extra_starts: Iterable[ThetaLike] = (),
) -> FitResult:
    """
    Fit one model variant by maximum likelihood.

    Args:
        root: Root signal
        shoot: Shoot signal
        times: Time grid
        variant: ModelVariant or its name ('null', 'rtos', 'stor', 'twodir')
        theta0: Starting parameters (default: derived from the data)
        config: Configuration (default: packaged defaults)
        extra_starts: Additional starting parameter vectors

    Returns:
        FitResult; converged is False when no start reached an optimum
    """
    config = config or get_config()
    variant = ModelVariant.parse(variant)
    root = np.asarray(root, dtype=float)
    shoot = np.asarray(shoot, dtype=float)
    t = np.asarray(times, dtype=float)

    base = as_parameter_vector(theta0) if theta0 is not None else default_theta(root, shoot, t, config)
    extras = [as_parameter_vector(e) for e in extra_starts]
    starts = _starting_points(base, variant, t, config.estimator.n_restarts, extras)
    mask = np.array(variant.free_mask)

    def objective(z, template):
        value = loglik(root, shoot, t, _from_internal(z, template, mask))
        return -value if np.isfinite(value) else _PENALTY

    method = config.estimator.method
    options = _minimizer_options(config)
    bounds = _search_bounds(mask, config)
    use_bounds = method.lower() in _BOUNDED_METHODS

    best = None
    best_converged = None
    n_iterations = 0
    n_finite_starts = 0

    for start in starts:
        if not ParameterVector.from_array(start).is_valid():
            continue
        z0 = np.clip(_to_internal(start, mask), bounds[:, 0], bounds[:, 1])
        if objective(z0, start) >= _PENALTY:
            continue
        n_finite_starts += 1

        res = minimize(
            objective, z0, args=(start,), method=method, options=options,
            bounds=bounds if use_bounds else None,
        )
        n_iterations += int(getattr(res, 'nit', 0) or 0)
        if not np.isfinite(res.fun) or res.fun >= _PENALTY:
            continue

        candidate = (float(res.fun), _from_internal(res.x, start, mask), bool(res.success), str(res.message))
        if best is None or candidate[0] < best[0]:
            best = candidate
        if candidate[2] and (best_converged is None or candidate[0] < best_converged[0]):
            best_converged = candidate

    if best is None:
        logger.debug(f"{variant.value} fit degenerate: likelihood non-finite at all {len(starts)} starts")
        return FitResult(
            variant=variant,
            theta=base.restricted(variant),
            loglik=-np.inf,
            converged=False,
            status=f"NumericDegeneracy: likelihood non-finite at all {len(starts)} starting points",
            n_iterations=n_iterations,
            n_starts=len(starts),
            degenerate=True,
        )

    chosen = best_converged if best_converged is not None else best
    fun, values, success, message = chosen
    theta = ParameterVector.from_array(values)

    logger.debug(
        f"{variant.value} fit: loglik={-fun:.4f}, converged={success}, "
        f"starts={n_finite_starts}/{len(starts)}, iterations={n_iterations}"
    )

    return FitResult(
        variant=variant,
        theta=theta,
        loglik=-fun,
        converged=success,
        status=message,
        n_iterations=n_iterations,
        n_starts=len(starts),
    )


def require_converged(fit: FitResult, label: str) -> FitResult:
    """
    Raise if a fit did not converge.

    Raises:
        NumericDegeneracy: likelihood was non-finite at every start
        ConvergenceFailure: optimiser did not reach a stable optimum
    """
    if fit.converged:
        return fit
    message = f"{label} fit ({fit.variant.value} model) did not converge: {fit.status}"
    if fit.degenerate:
        raise NumericDegeneracy(message, label=label, fit=fit)
    raise ConvergenceFailure(message, label=label, fit=fit)
