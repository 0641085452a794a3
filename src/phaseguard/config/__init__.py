"""
phaseguard Configuration Package.

This module exports configuration classes and utilities.
"""

from phaseguard.config.settings import (
    ErrorRecoveryConfig,
    MonitorConfig,
    OutputConfig,
    PhaseguardSettings,
    StoreConfig,
    get_settings,
    reset_settings,
)

__all__ = [
    "ErrorRecoveryConfig",
    "MonitorConfig",
    "OutputConfig",
    "PhaseguardSettings",
    "StoreConfig",
    "get_settings",
    "reset_settings",
]
