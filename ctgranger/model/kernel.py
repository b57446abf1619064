"""
Cross-impact kernel.

The impact of one signal on the other is a unimodal function of elapsed
time d, peaking at gamma with value 1:

    k(d; gamma) = (d / gamma) * exp(1 - d / gamma)

At observation i the influencing signal enters as a weighted average of
its past observations j < i, with weights proportional to k(t_i - t_j).
Weights are normalised in log space, so large elapsed times never
underflow to an all-zero row. gamma = 0 puts all weight on the most
recent observation.
"""

import numpy as np


def impact_kernel(d: np.ndarray, gamma: float) -> np.ndarray:
    """
    Evaluate k(d; gamma) elementwise.

    Args:
        d: Elapsed times (>= 0)
        gamma: Time to maximal impact; gamma <= 0 returns zeros

    Returns:
        Kernel values in [0, 1]
    """
    d = np.asarray(d, dtype=float)
    if gamma <= 0:
        return np.zeros_like(d)
    ratio = d / gamma
    return ratio * np.exp(1.0 - ratio)


def impact_weights(times: np.ndarray, gamma: float) -> np.ndarray:
    """
    Row-normalised kernel weights over past observations.

    Args:
        times: Strictly increasing time points, length n
        gamma: Time to maximal impact

    Returns:
        (n, n) strictly lower triangular matrix. Row i (i >= 1) sums to 1;
        row 0 is all zeros.
    """
    t = np.asarray(times, dtype=float)
    n = len(t)
    weights = np.zeros((n, n))
    if n < 2:
        return weights

    if gamma <= 0:
        rows = np.arange(1, n)
        weights[rows, rows - 1] = 1.0
        return weights

    lower = np.tril(np.ones((n, n), dtype=bool), k=-1)
    elapsed = t[:, np.newaxis] - t[np.newaxis, :]
    ratio = np.where(lower, elapsed / gamma, 1.0)
    log_k = np.where(lower, np.log(ratio) + 1.0 - ratio, -np.inf)

    row_max = log_k.max(axis=1, keepdims=True)
    row_max = np.where(np.isfinite(row_max), row_max, 0.0)
    unnorm = np.exp(log_k - row_max)
    totals = unnorm.sum(axis=1, keepdims=True)
    np.divide(unnorm, totals, out=weights, where=totals > 0)
    return weights
