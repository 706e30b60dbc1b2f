"""
Configuration module for the mass-import pipeline.
"""

from .settings import (
    ApiConfig,
    Config,
    ConfigurationError,
    DedupeConfig,
    RunConfig,
)

__all__ = [
    'Config',
    'ConfigurationError',
    'ApiConfig',
    'DedupeConfig',
    'RunConfig',
]
