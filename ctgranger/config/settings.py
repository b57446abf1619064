"""
Configuration loader.

Reads YAML files to configure the estimator, input validation and the
bootstrap. Defaults ship with the package in defaults.yaml.

Usage:
    from ctgranger.config.settings import get_config

    config = get_config()
    config.estimator.max_iter
    config.bootstrap.min_success_fraction

    custom = load_config('my_settings.yaml')
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


DEFAULTS_PATH = Path(__file__).parent / 'defaults.yaml'


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class EstimatorConfig:
    """Numerical optimisation settings."""
    method: str = 'L-BFGS-B'
    max_iter: int = 500
    xatol: float = 1e-6
    fatol: float = 1e-8
    n_restarts: int = 2
    phi_fraction: float = 0.2
    variance_floor: float = 1e-6
    log_bound: float = 20.0
    psi_bound: float = 0.999


@dataclass
class ValidationConfig:
    """Input validation thresholds."""
    min_points: int = 10


@dataclass
class BootstrapConfig:
    """Parametric bootstrap settings."""
    min_success_fraction: float = 0.5
    log_every: int = 10


@dataclass
class GrangerConfig:
    """Complete configuration."""
    estimator: EstimatorConfig = field(default_factory=EstimatorConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    bootstrap: BootstrapConfig = field(default_factory=BootstrapConfig)
    source: Optional[str] = None

    def __repr__(self):
        return (f"GrangerConfig(method={self.estimator.method}, "
                f"max_iter={self.estimator.max_iter}, "
                f"min_points={self.validation.min_points}, "
                f"min_success_fraction={self.bootstrap.min_success_fraction})")


# =============================================================================
# LOADER FUNCTIONS
# =============================================================================

def _parse_estimator_config(raw: Dict) -> EstimatorConfig:
    """Parse estimator section."""
    base = EstimatorConfig()
    return EstimatorConfig(
        method=str(raw.get('method', base.method)),
        max_iter=int(raw.get('max_iter', base.max_iter)),
        xatol=float(raw.get('xatol', base.xatol)),
        fatol=float(raw.get('fatol', base.fatol)),
        n_restarts=int(raw.get('n_restarts', base.n_restarts)),
        phi_fraction=float(raw.get('phi_fraction', base.phi_fraction)),
        variance_floor=float(raw.get('variance_floor', base.variance_floor)),
        log_bound=float(raw.get('log_bound', base.log_bound)),
        psi_bound=float(raw.get('psi_bound', base.psi_bound)),
    )


def _parse_validation_config(raw: Dict) -> ValidationConfig:
    """Parse validation section."""
    return ValidationConfig(
        min_points=int(raw.get('min_points', ValidationConfig.min_points)),
    )


def _parse_bootstrap_config(raw: Dict) -> BootstrapConfig:
    """Parse bootstrap section."""
    base = BootstrapConfig()
    return BootstrapConfig(
        min_success_fraction=float(raw.get('min_success_fraction', base.min_success_fraction)),
        log_every=int(raw.get('log_every', base.log_every)),
    )


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge override sections into base, key by key."""
    merged = {k: dict(v or {}) for k, v in base.items()}
    for section, values in (override or {}).items():
        merged.setdefault(section, {}).update(values or {})
    return merged


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path, 'r') as f:
        raw = yaml.safe_load(f)
    return raw or {}


def load_config(path: Union[str, Path, None] = None) -> GrangerConfig:
    """
    Load configuration from YAML.

    Args:
        path: YAML file overriding the packaged defaults (default: defaults only)

    Returns:
        GrangerConfig object

    Raises:
        FileNotFoundError: If the config file doesn't exist
        yaml.YAMLError: If YAML is invalid
    """
    raw = _read_yaml(DEFAULTS_PATH)

    if path is not None:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config not found: {path}")
        raw = _merge(raw, _read_yaml(path))

    return GrangerConfig(
        estimator=_parse_estimator_config(raw.get('estimator', {})),
        validation=_parse_validation_config(raw.get('validation', {})),
        bootstrap=_parse_bootstrap_config(raw.get('bootstrap', {})),
        source=str(path) if path is not None else str(DEFAULTS_PATH),
    )


# =============================================================================
# CACHING
# =============================================================================

_config_cache: Dict[str, GrangerConfig] = {}


def get_config(path: Union[str, Path, None] = None) -> GrangerConfig:
    """Get configuration, loading from YAML on first use."""
    key = str(path) if path is not None else '__defaults__'
    if key not in _config_cache:
        _config_cache[key] = load_config(path)
    return _config_cache[key]


def clear_config_cache():
    """Clear cached configurations (for testing or reload)."""
    _config_cache.clear()
