"""
Model parameters and nested model variants.

The parameter vector has a fixed canonical order:

    (phi_root, phi_shoot, sigma2_root, sigma2_shoot,
     psi_root, psi_shoot, gamma_root, gamma_shoot)

psi_root is the impact of shoot on root, psi_shoot the impact of root on
shoot. Each ModelVariant carries the mask of parameters it estimates; the
rest are held at zero.
"""

import math
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Iterable, Tuple, Union

import numpy as np

from ctgranger.exceptions import ValidationError


PARAMETER_NAMES: Tuple[str, ...] = (
    'phi_root',
    'phi_shoot',
    'sigma2_root',
    'sigma2_shoot',
    'psi_root',
    'psi_shoot',
    'gamma_root',
    'gamma_shoot',
)

N_PARAMETERS = len(PARAMETER_NAMES)


# =============================================================================
# PARAMETER VECTOR
# =============================================================================

@dataclass(frozen=True)
class ParameterVector:
    """Immutable 8-parameter vector of the bivariate model."""
    phi_root: float
    phi_shoot: float
    sigma2_root: float
    sigma2_shoot: float
    psi_root: float = 0.0
    psi_shoot: float = 0.0
    gamma_root: float = 0.0
    gamma_shoot: float = 0.0

    @classmethod
    def from_array(cls, values: Iterable[float]) -> 'ParameterVector':
        """Build from an ordered sequence of 8 values."""
        arr = np.asarray(list(values), dtype=float).ravel()
        if arr.size != N_PARAMETERS:
            raise ValidationError(
                f"theta must have {N_PARAMETERS} values, got {arr.size}",
                field='theta',
            )
        return cls(*(float(v) for v in arr))

    def as_array(self) -> np.ndarray:
        return np.array([getattr(self, name) for name in PARAMETER_NAMES], dtype=float)

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def restricted(self, variant: 'ModelVariant') -> 'ParameterVector':
        """Copy with the variant's fixed parameters set to zero."""
        updates = {
            name: 0.0
            for name, free in zip(PARAMETER_NAMES, variant.free_mask)
            if not free
        }
        return replace(self, **updates)

    def domain_errors(self) -> list:
        """List of (field, message) for every out-of-domain component."""
        errors = []
        for name in PARAMETER_NAMES:
            value = getattr(self, name)
            if not math.isfinite(value):
                errors.append((name, f"{name} must be finite, got {value}"))
                continue
            if name.startswith(('phi', 'sigma2')) and value <= 0:
                errors.append((name, f"{name} must be positive, got {value}"))
            elif name.startswith('psi') and not -1.0 < value < 1.0:
                errors.append((name, f"{name} must lie in (-1, 1), got {value}"))
            elif name.startswith('gamma') and value < 0:
                errors.append((name, f"{name} must be non-negative, got {value}"))
        return errors

    def is_valid(self) -> bool:
        return not self.domain_errors()

    def validate(self) -> 'ParameterVector':
        """Raise ValidationError naming the first out-of-domain parameter."""
        errors = self.domain_errors()
        if errors:
            field, message = errors[0]
            raise ValidationError(message, field=field)
        return self

    def __repr__(self):
        body = ", ".join(f"{name}={getattr(self, name):.4g}" for name in PARAMETER_NAMES)
        return f"ParameterVector({body})"


ThetaLike = Union[ParameterVector, Iterable[float]]


def as_parameter_vector(theta: ThetaLike) -> ParameterVector:
    """Coerce a ParameterVector or an ordered sequence of 8 values."""
    if isinstance(theta, ParameterVector):
        return theta
    return ParameterVector.from_array(theta)


# =============================================================================
# MODEL VARIANTS
# =============================================================================

class ModelVariant(Enum):
    """
    Nested model variants.

    NULL    no cross-influence
    RTOS    root influences shoot (psi_shoot, gamma_shoot free)
    STOR    shoot influences root (psi_root, gamma_root free)
    TWODIR  both directions free
    """
    NULL = 'null'
    RTOS = 'rtos'
    STOR = 'stor'
    TWODIR = 'twodir'

    @property
    def root_impact_free(self) -> bool:
        """psi_root/gamma_root (shoot -> root) are estimated."""
        return self in (ModelVariant.STOR, ModelVariant.TWODIR)

    @property
    def shoot_impact_free(self) -> bool:
        """psi_shoot/gamma_shoot (root -> shoot) are estimated."""
        return self in (ModelVariant.RTOS, ModelVariant.TWODIR)

    @property
    def free_mask(self) -> Tuple[bool, ...]:
        return (
            True, True, True, True,
            self.root_impact_free, self.shoot_impact_free,
            self.root_impact_free, self.shoot_impact_free,
        )

    @property
    def n_free(self) -> int:
        return sum(self.free_mask)

    @property
    def free_names(self) -> Tuple[str, ...]:
        return tuple(n for n, free in zip(PARAMETER_NAMES, self.free_mask) if free)

    @property
    def is_alternative(self) -> bool:
        return self is not ModelVariant.NULL

    @classmethod
    def parse(cls, value: Union[str, 'ModelVariant']) -> 'ModelVariant':
        """Parse any variant name, including 'null'."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            names = [v.value for v in cls]
            raise ValidationError(
                f"Unknown model variant {value!r}; expected one of {names}",
                field='variant',
            ) from None

    @classmethod
    def parse_alternative(cls, value: Union[str, 'ModelVariant']) -> 'ModelVariant':
        """Parse an alternative selector: 'twodir', 'rtos' or 'stor'."""
        try:
            variant = cls.parse(value)
        except ValidationError:
            variant = None
        if variant is None or not variant.is_alternative:
            raise ValidationError(
                f"alternative must be one of ['twodir', 'rtos', 'stor'], got {value!r}",
                field='alternative',
            )
        return variant
