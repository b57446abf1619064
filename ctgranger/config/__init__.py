"""ctgranger Configuration Module."""

from ctgranger.config.settings import (
    EstimatorConfig,
    ValidationConfig,
    BootstrapConfig,
    GrangerConfig,
    DEFAULTS_PATH,
    load_config,
    get_config,
    clear_config_cache,
)

__all__ = [
    'EstimatorConfig',
    'ValidationConfig',
    'BootstrapConfig',
    'GrangerConfig',
    'DEFAULTS_PATH',
    'load_config',
    'get_config',
    'clear_config_cache',
]
