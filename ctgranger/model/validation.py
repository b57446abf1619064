"""
Input validation for signals and time grids.

Constraints are checked, never repaired: malformed input raises
ValidationError naming the offending field.
"""

from typing import Tuple

import numpy as np

from ctgranger.exceptions import ValidationError


def validate_times(times) -> np.ndarray:
    """Return times as a float array; must be finite, non-negative, strictly increasing."""
    t = np.asarray(times, dtype=float)
    if t.ndim != 1:
        raise ValidationError(f"times must be one-dimensional, got shape {t.shape}", field='times')
    if t.size == 0:
        raise ValidationError("times is empty", field='times')
    if not np.all(np.isfinite(t)):
        raise ValidationError("times contains non-finite values", field='times')
    if np.any(t < 0):
        raise ValidationError("times must be non-negative", field='times')
    steps = np.diff(t)
    if np.any(steps <= 0):
        bad = int(np.argmax(steps <= 0)) + 1
        raise ValidationError(
            f"times must be strictly increasing (violated at index {bad}: "
            f"{t[bad - 1]} -> {t[bad]})",
            field='times',
        )
    return t


def validate_signal(values, name: str) -> np.ndarray:
    """Return a signal as a finite one-dimensional float array."""
    x = np.asarray(values, dtype=float)
    if x.ndim != 1:
        raise ValidationError(f"{name} must be one-dimensional, got shape {x.shape}", field=name)
    if not np.all(np.isfinite(x)):
        raise ValidationError(f"{name} contains non-finite values", field=name)
    return x


def validate_inputs(root, shoot, times, min_points: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Validate an observed signal pair against its time grid.

    Args:
        root: Root signal
        shoot: Shoot signal
        times: Shared time grid
        min_points: Minimum number of observations

    Returns:
        (root, shoot, times) as float arrays
    """
    root = validate_signal(root, 'root')
    shoot = validate_signal(shoot, 'shoot')
    t = validate_times(times)

    if not (len(root) == len(shoot) == len(t)):
        raise ValidationError(
            f"Length mismatch: root={len(root)}, shoot={len(shoot)}, times={len(t)}",
            field='length',
        )
    if len(t) < min_points:
        raise ValidationError(
            f"Need at least {min_points} observations to estimate the model, got {len(t)}",
            field='length',
        )
    return root, shoot, t


def validate_seed(seed, allow_none: bool = False):
    """Return seed as a non-negative int (or None when allowed)."""
    if seed is None and allow_none:
        return None
    if isinstance(seed, bool) or not isinstance(seed, (int, np.integer)):
        raise ValidationError(f"seed must be a non-negative integer, got {seed!r}", field='seed')
    if seed < 0:
        raise ValidationError(f"seed must be non-negative, got {seed}", field='seed')
    return int(seed)
